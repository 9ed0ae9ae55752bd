"""Summary use cases."""

from .orchestrator import SummaryOrchestrator, build_metadata_input
from .text import chunk_text, clean_summary, normalize_whitespace, truncate_chars, truncate_words

__all__ = [
    "SummaryOrchestrator",
    "build_metadata_input",
    "chunk_text",
    "clean_summary",
    "normalize_whitespace",
    "truncate_chars",
    "truncate_words",
]
