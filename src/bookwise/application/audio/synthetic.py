"""
Synthetic speech-like audio.

When no real speech can be synthesized the caller still gets a playable
artifact: a WAV whose length follows the word count at a typical reading
speed and whose tones rise and fall in word-sized bursts.

Output is a pure function of (word count, language): same input, same bytes.
"""

from __future__ import annotations

import io
import math
import wave
import zlib
from array import array

from bookwise.domain.entities import count_words

WORDS_PER_MINUTE = 150
MIN_DURATION_MS = 3_000
MAX_DURATION_MS = 45_000
SAMPLE_RATE = 8_000

# Fraction of each word slot that is voiced; the rest is the gap between words
_VOICED_FRACTION = 0.72
_AMPLITUDE = 9_000
# Fundamental plus two weaker overtones
_HARMONICS = ((1.0, 1.0), (2.0, 0.45), (3.0, 0.2))


def estimate_duration_ms(
    word_count: int,
    words_per_minute: int = WORDS_PER_MINUTE,
    min_ms: int = MIN_DURATION_MS,
    max_ms: int = MAX_DURATION_MS,
) -> int:
    """Reading time for ``word_count`` words, clamped to [min_ms, max_ms]."""
    return max(min_ms, min(max_ms, reading_time_ms(word_count, words_per_minute)))


def reading_time_ms(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    return round(max(word_count, 0) * 60_000 / words_per_minute)


def base_pitch_hz(language: str) -> float:
    """Stable per-language fundamental between 110 and 190 Hz."""
    digest = zlib.crc32((language or "en").lower().encode("ascii", "ignore"))
    return 110.0 + (digest % 81)


class SyntheticSpeechSynthesizer:
    """
    Renders speech-cadence tones instead of speech.

    Same interface as the real synthesizers, so the audio orchestrator can
    use it as the last fallback and tests can use it directly.
    """

    def __init__(
        self,
        words_per_minute: int = WORDS_PER_MINUTE,
        min_duration_ms: int = MIN_DURATION_MS,
        max_duration_ms: int = MAX_DURATION_MS,
        sample_rate: int = SAMPLE_RATE,
    ):
        self.words_per_minute = words_per_minute
        self.min_duration_ms = min_duration_ms
        self.max_duration_ms = max_duration_ms
        self.sample_rate = sample_rate

    def duration_ms(self, word_count: int) -> int:
        return estimate_duration_ms(
            word_count, self.words_per_minute, self.min_duration_ms, self.max_duration_ms
        )

    async def synthesize(self, text: str, language: str, voice: str | None = None) -> bytes:
        return self.render(count_words(text), language)

    def render(self, word_count: int, language: str) -> bytes:
        duration_ms = self.duration_ms(word_count)
        total = self.sample_rate * duration_ms // 1000
        samples = self._samples(max(word_count, 1), total, base_pitch_hz(language))

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)
            wav.writeframes(samples.tobytes())
        return buffer.getvalue()

    def _samples(self, word_count: int, total: int, pitch: float) -> array:
        rate = self.sample_rate
        # Words that do not fit the clamped duration are dropped, short texts stretch
        words = max(1, min(word_count, round(total / rate * self.words_per_minute / 60)))
        slot = max(1, total // words)
        voiced = max(1, int(slot * _VOICED_FRACTION))
        norm = sum(weight for _, weight in _HARMONICS)

        out = array("h", bytes(2 * total))
        phase = 0.0
        for index in range(words):
            # Intonation: a slow contour per "sentence" of 8 words plus per-word wobble
            contour = 1.0 + 0.12 * math.sin(math.pi * (index % 8) / 8)
            wobble = 1.0 + 0.05 * math.sin(index * 2.3)
            freq = pitch * contour * wobble
            step = 2 * math.pi * freq / rate
            start = index * slot
            for n in range(min(voiced, total - start)):
                envelope = math.sin(math.pi * n / voiced) ** 2
                value = sum(weight * math.sin(mult * phase) for mult, weight in _HARMONICS) / norm
                out[start + n] = int(_AMPLITUDE * envelope * value)
                phase += step
            # Restart the waveform at each sentence boundary
            if index % 8 == 7:
                phase = 0.0
        return out
