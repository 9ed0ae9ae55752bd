"""Text helpers for summary input and output."""

from __future__ import annotations

import re

_BLANK_RUN_RE = re.compile(r"[ \t]+")

# Chunking for long inputs; overlap keeps sentences cut at a boundary in both chunks
CHUNK_SIZE_CHARS = 12_000
CHUNK_OVERLAP_CHARS = 600


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs and strip every line; keep paragraph breaks."""
    lines = [_BLANK_RUN_RE.sub(" ", line).strip() for line in text.splitlines()]
    out: list[str] = []
    for line in lines:
        if line or (out and out[-1]):
            out.append(line)
    return "\n".join(out).strip()


def truncate_chars(text: str, max_chars: int) -> str:
    """
    Cut ``text`` to at most ``max_chars`` characters, preferring a word boundary.

    Falls back to a hard cut when the last whitespace is in the first half.
    """
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    boundary = max(cut.rfind(" "), cut.rfind("\n"))
    if boundary > max_chars // 2:
        cut = cut[:boundary]
    return cut.rstrip()


def truncate_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE_CHARS,
    overlap: int = CHUNK_OVERLAP_CHARS,
) -> list[str]:
    """Split into overlapping chunks, breaking at paragraph or sentence ends when possible."""
    text = text.strip()
    if not text:
        return []
    if overlap < 0 or overlap >= chunk_size // 2:
        raise ValueError("overlap must be below half the chunk size")

    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        if end < len(text):
            window = text[start:end]
            for sep in ("\n\n", ". ", " "):
                pos = window.rfind(sep)
                if pos > chunk_size // 2:
                    end = start + pos + len(sep)
                    break
        chunks.append(text[start:end].strip())
        if end >= len(text):
            break
        start = end - overlap
    return [c for c in chunks if c]


def clean_summary(summary: str) -> str:
    """Drop blank lines and surrounding whitespace from model output."""
    return "\n".join(line.strip() for line in summary.splitlines() if line.strip())
