"""
AudioOrchestrator - Narration for summaries that always produces audio

State machine per request:

    REQUESTED -> SYNTHESIZING_PRIMARY -> SUCCESS
                                      -> SYNTHESIZING_BACKUP -> SUCCESS
                                                             -> FALLBACK_SYNTHETIC -> SUCCESS

There is no failure state for a summary that exists. When neither the
primary nor the backup voice yields audio, the synthetic renderer does, and
the record is flagged ``is_synthetic_fallback``. Synthetic records are not
cached or stored so a later request tries real synthesis again.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from bookwise.application.audio.synthetic import SyntheticSpeechSynthesizer, reading_time_ms
from bookwise.application.ports import AudioStore, SpeechSynthesizer
from bookwise.domain.entities import DEFAULT_VOICE, AudioRecord, SummaryRecord, SynthesisState
from bookwise.infrastructure.cache import BackgroundWriteQueue, ResultCache, make_cache_key
from bookwise.shared.async_utils import run_with_timeout
from bookwise.shared.exceptions import InvalidParameterError, NotFoundError
from bookwise.shared.settings import AudioSettings

logger = logging.getLogger(__name__)

SummaryLookup = Callable[[str], Awaitable[SummaryRecord | None]]

_MAGIC_MIME: tuple[tuple[bytes, str], ...] = (
    (b"RIFF", "audio/wav"),
    (b"fLaC", "audio/flac"),
    (b"OggS", "audio/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"\xff\xfb", "audio/mpeg"),
    (b"\xff\xf3", "audio/mpeg"),
)


def sniff_mime(payload: bytes) -> str:
    for magic, mime in _MAGIC_MIME:
        if payload.startswith(magic):
            return mime
    return "application/octet-stream"


class AudioOrchestrator:
    """
    Turns SummaryRecords into AudioRecords.

    Usage:
        orchestrator = AudioOrchestrator(summaries.get_summary, hf_speech, settings=settings.audio)
        record = await orchestrator.synthesize(summary.id, "en")
        if record.is_synthetic_fallback:
            ...  # tell the user this is a placeholder
    """

    def __init__(
        self,
        summary_lookup: SummaryLookup,
        primary: SpeechSynthesizer | None = None,
        *,
        fallback: SyntheticSpeechSynthesizer | None = None,
        store: AudioStore | None = None,
        cache: ResultCache | None = None,
        write_queue: BackgroundWriteQueue | None = None,
        settings: AudioSettings | None = None,
    ):
        self._settings = settings or AudioSettings()
        self._summary_lookup = summary_lookup
        self._primary = primary
        self._fallback = fallback or SyntheticSpeechSynthesizer(
            words_per_minute=self._settings.words_per_minute,
            min_duration_ms=self._settings.min_duration_ms,
            max_duration_ms=self._settings.max_duration_ms,
            sample_rate=self._settings.sample_rate,
        )
        self._store = store
        self._cache = cache
        self._write_queue = write_queue or BackgroundWriteQueue()

    @staticmethod
    def cache_key(summary_id: str, language: str, voice_type: str) -> str:
        return make_cache_key("audio", summary_id=summary_id, language=language, voice=voice_type)

    async def synthesize(
        self,
        summary_id: str,
        language: str = "en",
        voice_type: str | None = None,
    ) -> AudioRecord:
        """
        Audio for a summary; real speech when possible, synthetic otherwise.

        Raises:
            InvalidParameterError: empty summary id
            NotFoundError: no summary with this id
        """
        if not isinstance(summary_id, str) or not summary_id.strip():
            raise InvalidParameterError("summary_id", summary_id, "a non-empty summary id")
        summary_id = summary_id.strip()
        language = (language or "en").strip().lower()
        voice = (voice_type or "").strip() or DEFAULT_VOICE
        key = self.cache_key(summary_id, language, voice)

        existing = await self._lookup_existing(key, summary_id, language, voice)
        if existing is not None:
            return existing

        summary = await self._summary_lookup(summary_id)
        if summary is None:
            raise NotFoundError("Summary", summary_id)

        transitions = [SynthesisState.REQUESTED]
        for state, attempt_voice in self._attempts(voice):
            transitions.append(state)
            audio = await self._try_synthesis(summary, language, attempt_voice, state)
            if audio is None:
                continue
            transitions.append(SynthesisState.SUCCESS)
            record = AudioRecord.create(
                summary_id=summary_id,
                language=language,
                voice_type=voice,
                audio=audio,
                mime_type=sniff_mime(audio),
                duration_estimate_ms=max(1, reading_time_ms(summary.word_count, self._settings.words_per_minute)),
                model=self._model_name(language, attempt_voice),
                transitions=tuple(transitions),
            )
            logger.info(
                f"Synthesized audio {record.id} for summary {summary_id} "
                f"({record.size_kb} KB, {record.mime_type}, voice={attempt_voice or DEFAULT_VOICE})"
            )
            self._schedule_persist(key, record)
            return record

        transitions.extend([SynthesisState.FALLBACK_SYNTHETIC, SynthesisState.SUCCESS])
        audio = self._fallback.render(summary.word_count, language)
        record = AudioRecord.create(
            summary_id=summary_id,
            language=language,
            voice_type=voice,
            audio=audio,
            mime_type="audio/wav",
            duration_estimate_ms=self._fallback.duration_ms(summary.word_count),
            is_synthetic_fallback=True,
            transitions=tuple(transitions),
        )
        logger.warning(
            f"Using synthetic audio for summary {summary_id} "
            f"({record.duration_estimate_ms} ms, {record.size_kb} KB)"
        )
        return record

    def _attempts(self, voice: str) -> list[tuple[SynthesisState, str | None]]:
        if self._primary is None:
            return []
        primary_voice = None if voice == DEFAULT_VOICE else voice
        attempts: list[tuple[SynthesisState, str | None]] = [
            (SynthesisState.SYNTHESIZING_PRIMARY, primary_voice)
        ]
        backup = self._settings.backup_voice
        if backup and backup != primary_voice:
            attempts.append((SynthesisState.SYNTHESIZING_BACKUP, backup))
        return attempts

    async def _try_synthesis(
        self,
        summary: SummaryRecord,
        language: str,
        voice: str | None,
        state: SynthesisState,
    ) -> bytes | None:
        label = "primary" if state is SynthesisState.SYNTHESIZING_PRIMARY else "backup"
        try:
            audio = await run_with_timeout(
                self._primary.synthesize(summary.text, language, voice),
                self._settings.synthesis_timeout,
                operation=f"speech synthesis ({label})",
                detail=f"for summary '{summary.id}'",
            )
        except Exception as e:
            # Absorbed: the next attempt or the synthetic renderer takes over
            logger.warning(f"Speech synthesis ({label}, voice={voice or DEFAULT_VOICE}) failed: {e}")
            return None
        if not audio:
            logger.warning(f"Speech synthesis ({label}) returned an empty payload for summary {summary.id}")
            return None
        return audio

    def _model_name(self, language: str, voice: str | None) -> str:
        model_for = getattr(self._primary, "model_for", None)
        if callable(model_for):
            return model_for(language, voice)
        return voice or type(self._primary).__name__

    async def _lookup_existing(
        self, key: str, summary_id: str, language: str, voice: str
    ) -> AudioRecord | None:
        if self._cache is not None:
            cached = await self._cache.aget(key, timeout=self._settings.cache_read_timeout)
            if cached is not None:
                logger.debug(f"Audio cache hit: {key}")
                return cached
        if self._store is None:
            return None
        try:
            return await self._store.find(summary_id, language, voice)
        except Exception as e:
            logger.warning(f"Audio store lookup failed for {summary_id}: {e}")
            return None

    def _schedule_persist(self, key: str, record: AudioRecord) -> None:
        cache = self._cache
        store = self._store
        ttl = self._settings.cache_ttl

        async def persist() -> None:
            if cache is not None:
                await cache.aset(key, record, ttl)
            if store is not None:
                await store.save(record)

        self._write_queue.submit(persist, name=f"audio:{record.id}")
