"""Audio narration use cases."""

from .orchestrator import AudioOrchestrator, sniff_mime
from .synthetic import SyntheticSpeechSynthesizer, estimate_duration_ms, reading_time_ms

__all__ = [
    "AudioOrchestrator",
    "SyntheticSpeechSynthesizer",
    "estimate_duration_ms",
    "reading_time_ms",
    "sniff_mime",
]
