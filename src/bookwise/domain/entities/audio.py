"""
Audio Entity

Narration of one summary. ``transitions`` records the path taken through
the synthesis state machine:

    REQUESTED -> SYNTHESIZING_PRIMARY -> SUCCESS
    REQUESTED -> SYNTHESIZING_PRIMARY -> SYNTHESIZING_BACKUP -> SUCCESS
    REQUESTED -> ... -> FALLBACK_SYNTHETIC -> SUCCESS
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

DEFAULT_VOICE = "default"


class SynthesisState(Enum):
    REQUESTED = "requested"
    SYNTHESIZING_PRIMARY = "synthesizing_primary"
    SYNTHESIZING_BACKUP = "synthesizing_backup"
    FALLBACK_SYNTHETIC = "fallback_synthetic"
    SUCCESS = "success"


@dataclass(frozen=True)
class AudioRecord:
    id: str
    summary_id: str
    language: str
    voice_type: str
    audio: bytes
    mime_type: str
    duration_estimate_ms: int
    size_kb: int
    created_at: datetime
    is_synthetic_fallback: bool = False
    model: str | None = None
    transitions: tuple[SynthesisState, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        summary_id: str,
        language: str,
        voice_type: str | None,
        audio: bytes,
        duration_estimate_ms: int,
        mime_type: str = "audio/wav",
        is_synthetic_fallback: bool = False,
        model: str | None = None,
        transitions: tuple[SynthesisState, ...] = (),
    ) -> AudioRecord:
        return cls(
            id=uuid.uuid4().hex,
            summary_id=summary_id,
            language=language,
            voice_type=voice_type or DEFAULT_VOICE,
            audio=audio,
            mime_type=mime_type,
            duration_estimate_ms=duration_estimate_ms,
            size_kb=max(1, math.ceil(len(audio) / 1024)),
            created_at=datetime.now(UTC),
            is_synthetic_fallback=is_synthetic_fallback,
            model=model,
            transitions=transitions,
        )

    @property
    def lookup_key(self) -> tuple[str, str, str]:
        return (self.summary_id, self.language, self.voice_type)

    def to_dict(self) -> dict[str, Any]:
        """Metadata only; the payload is served separately."""
        return {
            "id": self.id,
            "summary_id": self.summary_id,
            "language": self.language,
            "voice_type": self.voice_type,
            "mime_type": self.mime_type,
            "duration_ms": self.duration_estimate_ms,
            "file_size_kb": self.size_kb,
            "created_at": self.created_at.isoformat(),
            "is_synthetic_fallback": self.is_synthetic_fallback,
            "model": self.model,
            "transitions": [s.value for s in self.transitions],
        }
