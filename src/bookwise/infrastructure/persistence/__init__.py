"""Record persistence."""

from .memory import InMemoryAudioStore, InMemorySummaryStore

__all__ = ["InMemoryAudioStore", "InMemorySummaryStore"]
