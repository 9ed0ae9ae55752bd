"""
Runtime settings.

Plain frozen dataclasses; nothing in here reads the environment. The
container builds a ``Settings`` from a YAML file and environment overrides
and hands the pieces to the components that need them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from .exceptions import ConfigurationError

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "en", "es", "fr", "de", "it", "pt", "zh", "ja", "ko", "ar", "hi", "ru",
)
SUMMARY_STYLES: tuple[str, ...] = ("concise", "detailed", "academic", "simple")


@dataclass(frozen=True)
class SearchSettings:
    max_limit: int = 100
    min_per_source: int = 5
    per_source_timeout: float = 10.0
    cache_read_timeout: float = 0.05
    cache_ttl: float = 3600.0
    min_query_length: int = 2
    max_query_length: int = 500
    # Lower rank wins duplicate resolution
    source_priority: dict[str, int] = field(
        default_factory=lambda: {"gutenberg": 0, "openlibrary": 1, "google": 2}
    )
    dedup_precedence: tuple[str, ...] = ("priority", "completeness", "relevance")


@dataclass(frozen=True)
class SummarySettings:
    content_timeout: float = 30.0
    generation_timeout: float = 120.0
    cache_read_timeout: float = 0.05
    max_input_chars: int = 30_000
    min_usable_chars: int = 200
    cache_ttl: float = 3600.0
    languages: tuple[str, ...] = SUPPORTED_LANGUAGES
    styles: tuple[str, ...] = SUMMARY_STYLES


@dataclass(frozen=True)
class AudioSettings:
    synthesis_timeout: float = 120.0
    cache_read_timeout: float = 0.05
    backup_voice: str | None = None
    words_per_minute: int = 150
    min_duration_ms: int = 3_000
    max_duration_ms: int = 45_000
    max_words: int = 500
    sample_rate: int = 8_000
    cache_ttl: float = 3600.0


@dataclass(frozen=True)
class CacheSettings:
    max_size: int = 1000
    ttl: float = 3600.0
    write_queue_size: int = 256


@dataclass(frozen=True)
class ServiceSettings:
    huggingface_api_key: str | None = None
    huggingface_base_url: str = "https://api-inference.huggingface.co"
    summarization_model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    google_books_api_key: str | None = None
    google_books_base_url: str = "https://www.googleapis.com/books/v1"
    gutendex_base_url: str = "https://gutendex.com"
    open_library_base_url: str = "https://openlibrary.org"
    http_timeout: float = 15.0
    user_agent: str = "bookwise/0.1 (+https://github.com/bookwise)"


@dataclass(frozen=True)
class Settings:
    search: SearchSettings = field(default_factory=SearchSettings)
    summary: SummarySettings = field(default_factory=SummarySettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    services: ServiceSettings = field(default_factory=ServiceSettings)
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Settings:
        """
        Build settings from a nested mapping (e.g. parsed YAML).

        Unknown keys raise ConfigurationError so typos surface at startup.
        """
        data = dict(data or {})
        sections = {
            "search": SearchSettings,
            "summary": SummarySettings,
            "audio": AudioSettings,
            "cache": CacheSettings,
            "services": ServiceSettings,
        }
        kwargs: dict[str, Any] = {}
        for name, section_cls in sections.items():
            raw = data.pop(name, None)
            if raw is None:
                continue
            if not isinstance(raw, Mapping):
                raise ConfigurationError(f"settings section '{name}' must be a mapping, got {type(raw).__name__}")
            kwargs[name] = _build_section(section_cls, name, raw)
        if "log_level" in data:
            kwargs["log_level"] = str(data.pop("log_level")).upper()
        if data:
            raise ConfigurationError(f"unknown settings keys: {', '.join(sorted(data))}")
        return cls(**kwargs)


def _build_section(section_cls: type, name: str, raw: Mapping[str, Any]) -> Any:
    known = {f.name: f for f in fields(section_cls)}
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(f"unknown keys in '{name}': {', '.join(sorted(unknown))}")
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, list):
            value = tuple(value)
        values[key] = value
    try:
        section = section_cls(**values)
    except TypeError as e:
        raise ConfigurationError(f"invalid '{name}' settings: {e}") from e
    _check_positive(section, name)
    return section


def _check_positive(section: Any, name: str) -> None:
    for f in fields(section):
        value = getattr(section, f.name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value <= 0:
            raise ConfigurationError(f"'{name}.{f.name}' must be positive, got {value!r}")
