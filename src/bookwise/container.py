"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management, plus the one place
that reads configuration from disk and the environment.

Usage::

    from bookwise.container import ApplicationContainer, load_config

    container = ApplicationContainer()
    container.config.from_dict(load_config("bookwise.yaml"))

    aggregator = container.aggregator()
    summaries = container.summary_orchestrator()

    # In tests, override any provider:
    container.text_generator.override(providers.Object(fake_generator))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dependency_injector import containers, providers

from bookwise.shared.exceptions import ConfigurationError
from bookwise.shared.settings import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

CONFIG_PATH_ENV = "BOOKWISE_CONFIG"

# env var -> (section, key, converter); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str, type]] = {
    "APP_HUGGINGFACE_API_KEY": ("services", "huggingface_api_key", str),
    "APP_HUGGINGFACE_API_BASE_URL": ("services", "huggingface_base_url", str),
    "GOOGLE_BOOKS_API_KEY": ("services", "google_books_api_key", str),
    "GUTENBERG_API_BASE_URL": ("services", "gutendex_base_url", str),
    "CACHE_MAX_CAPACITY": ("cache", "max_size", int),
    "BOOKWISE_LOG_LEVEL": (None, "log_level", str),
}

# CACHE_TTL_SECONDS applies to the cache and to every per-operation TTL
_TTL_ENV = "CACHE_TTL_SECONDS"
_TTL_TARGETS = (("cache", "ttl"), ("search", "cache_ttl"), ("summary", "cache_ttl"), ("audio", "cache_ttl"))


# =============================================================================
# Configuration loading
# =============================================================================

def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Raw settings mapping: optional YAML file, then environment overrides.

    Args:
        path: YAML file; defaults to $BOOKWISE_CONFIG when set
        environ: Environment to read (defaults to os.environ)

    Raises:
        ConfigurationError: unreadable file, invalid YAML or a bad value
    """
    env = os.environ if environ is None else environ
    path = path or env.get(CONFIG_PATH_ENV) or None

    data: dict[str, Any] = {}
    if path:
        data = _read_yaml(Path(path))

    for name, (section, key, convert) in ENV_OVERRIDES.items():
        raw = env.get(name, "").strip()
        if raw:
            _set(data, section, key, _convert(name, raw, convert))

    raw_ttl = env.get(_TTL_ENV, "").strip()
    if raw_ttl:
        ttl = _convert(_TTL_ENV, raw_ttl, float)
        for section, key in _TTL_TARGETS:
            _set(data, section, key, ttl)
    return data


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Validated Settings from ``load_config``."""
    return Settings.from_mapping(load_config(path, environ))


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must hold a mapping, got {type(data).__name__}")
    logger.debug(f"Loaded config from {path}")
    return data


def _convert(name: str, raw: str, convert: type) -> Any:
    try:
        return convert(raw)
    except ValueError as e:
        raise ConfigurationError(f"invalid value for {name}: {raw!r}") from e


def _set(data: dict[str, Any], section: str | None, key: str, value: Any) -> None:
    if section is None:
        data[key] = value
        return
    target = data.setdefault(section, {})
    if not isinstance(target, dict):
        raise ConfigurationError(f"settings section '{section}' must be a mapping")
    target[key] = value


def configure_logging(level: str = "INFO") -> None:
    """Console logging for applications embedding Bookwise; never called on import."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


# =============================================================================
# Lazy factories
# =============================================================================

def _create_settings(data: Mapping[str, Any] | None) -> Settings:
    return Settings.from_mapping(data)


def _create_cache(settings: Settings) -> object:
    from bookwise.infrastructure.cache import ResultCache

    return ResultCache(max_size=settings.cache.max_size, ttl=settings.cache.ttl)


def _create_write_queue(settings: Settings) -> object:
    from bookwise.infrastructure.cache import BackgroundWriteQueue

    return BackgroundWriteQueue(max_pending=settings.cache.write_queue_size)


def _create_gutendex(settings: Settings) -> object:
    from bookwise.infrastructure.sources import GutendexClient

    services = settings.services
    return GutendexClient(
        base_url=services.gutendex_base_url,
        timeout=services.http_timeout,
        user_agent=services.user_agent,
    )


def _create_open_library(settings: Settings) -> object:
    from bookwise.infrastructure.sources import OpenLibraryClient

    services = settings.services
    return OpenLibraryClient(
        base_url=services.open_library_base_url,
        timeout=services.http_timeout,
        user_agent=services.user_agent,
    )


def _create_google_books(settings: Settings) -> object:
    from bookwise.infrastructure.sources import GoogleBooksClient

    services = settings.services
    return GoogleBooksClient(
        api_key=services.google_books_api_key,
        base_url=services.google_books_base_url,
        timeout=services.http_timeout,
        user_agent=services.user_agent,
    )


def _create_content_resolver(clients: list[object]) -> object:
    from bookwise.infrastructure.content import CatalogContentResolver

    return CatalogContentResolver(clients)


def _create_huggingface_client(settings: Settings) -> object:
    from bookwise.infrastructure.generation import HuggingFaceClient

    services = settings.services
    return HuggingFaceClient(
        api_key=services.huggingface_api_key,
        base_url=services.huggingface_base_url,
        timeout=max(settings.summary.generation_timeout, settings.audio.synthesis_timeout),
        user_agent=services.user_agent,
    )


def _create_text_generator(client: object, settings: Settings) -> object:
    from bookwise.infrastructure.generation import HuggingFaceTextGenerator

    return HuggingFaceTextGenerator(client, model=settings.services.summarization_model)


def _create_speech_synthesizer(client: object, settings: Settings) -> object:
    from bookwise.infrastructure.generation import HuggingFaceSpeechSynthesizer

    return HuggingFaceSpeechSynthesizer(client, max_words=settings.audio.max_words)


def _create_summary_store() -> object:
    from bookwise.infrastructure.persistence import InMemorySummaryStore

    return InMemorySummaryStore()


def _create_audio_store() -> object:
    from bookwise.infrastructure.persistence import InMemoryAudioStore

    return InMemoryAudioStore()


def _create_interpreter() -> object:
    from bookwise.application.search import QueryInterpreter

    return QueryInterpreter()


def _create_scorer(interpreter: object) -> object:
    from bookwise.application.search import RelevanceScorer

    return RelevanceScorer(interpreter=interpreter)


def _create_deduplicator(settings: Settings) -> object:
    from bookwise.application.search import DedupConfig, Deduplicator

    config = DedupConfig.from_names(settings.search.source_priority, settings.search.dedup_precedence)
    return Deduplicator(config)


def _create_aggregator(
    sources: list[object],
    scorer: object,
    deduplicator: object,
    interpreter: object,
    cache: object,
    write_queue: object,
    settings: Settings,
) -> object:
    from bookwise.application.search import BookSearchAggregator

    return BookSearchAggregator(
        sources,
        scorer=scorer,
        deduplicator=deduplicator,
        interpreter=interpreter,
        cache=cache,
        write_queue=write_queue,
        settings=settings.search,
    )


def _create_summary_orchestrator(
    resolver: object,
    generator: object,
    store: object,
    cache: object,
    write_queue: object,
    settings: Settings,
) -> object:
    from bookwise.application.summary import SummaryOrchestrator

    return SummaryOrchestrator(
        resolver,
        generator,
        store=store,
        cache=cache,
        write_queue=write_queue,
        settings=settings.summary,
    )


def _create_audio_orchestrator(
    summaries: Any,
    primary: object,
    store: object,
    cache: object,
    write_queue: object,
    settings: Settings,
) -> object:
    from bookwise.application.audio import AudioOrchestrator

    return AudioOrchestrator(
        summaries.get_summary,
        primary,
        store=store,
        cache=cache,
        write_queue=write_queue,
        settings=settings.audio,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for Bookwise.

    Manages creation and lifecycle of all core services:
    - ``cache`` / ``write_queue``: Shared result cache and its background writer
    - ``gutendex`` / ``open_library`` / ``google_books``: Catalog clients
    - ``aggregator``: Multi-catalog search
    - ``summary_orchestrator`` / ``audio_orchestrator``: Generation pipelines
    """

    config = providers.Configuration()

    settings = providers.Singleton(_create_settings, data=config)

    cache = providers.Singleton(_create_cache, settings=settings)
    write_queue = providers.Singleton(_create_write_queue, settings=settings)

    gutendex = providers.Singleton(_create_gutendex, settings=settings)
    open_library = providers.Singleton(_create_open_library, settings=settings)
    google_books = providers.Singleton(_create_google_books, settings=settings)
    sources = providers.List(gutendex, open_library, google_books)

    content_resolver = providers.Singleton(_create_content_resolver, clients=sources)

    huggingface_client = providers.Singleton(_create_huggingface_client, settings=settings)
    text_generator = providers.Singleton(_create_text_generator, client=huggingface_client, settings=settings)
    speech_synthesizer = providers.Singleton(
        _create_speech_synthesizer, client=huggingface_client, settings=settings
    )

    summary_store = providers.Singleton(_create_summary_store)
    audio_store = providers.Singleton(_create_audio_store)

    interpreter = providers.Singleton(_create_interpreter)
    scorer = providers.Singleton(_create_scorer, interpreter=interpreter)
    deduplicator = providers.Singleton(_create_deduplicator, settings=settings)

    aggregator = providers.Singleton(
        _create_aggregator,
        sources=sources,
        scorer=scorer,
        deduplicator=deduplicator,
        interpreter=interpreter,
        cache=cache,
        write_queue=write_queue,
        settings=settings,
    )

    summary_orchestrator = providers.Singleton(
        _create_summary_orchestrator,
        resolver=content_resolver,
        generator=text_generator,
        store=summary_store,
        cache=cache,
        write_queue=write_queue,
        settings=settings,
    )

    audio_orchestrator = providers.Singleton(
        _create_audio_orchestrator,
        summaries=summary_orchestrator,
        primary=speech_synthesizer,
        store=audio_store,
        cache=cache,
        write_queue=write_queue,
        settings=settings,
    )


__all__ = [
    "ApplicationContainer",
    "configure_logging",
    "load_config",
    "load_settings",
]
