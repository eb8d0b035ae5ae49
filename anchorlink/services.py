"""Entry points wiring the engine components to Django settings and models.

Views and management commands go through this module rather than building
engine components themselves, so configuration, credentials and the event
sink are resolved in one place.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from django.conf import settings

from .engine.config import CorpusConfig, load_config
from .engine.embeddings import EmbeddingBackfill, EmbeddingProvider, OpenAIEmbeddingProvider
from .engine.events import EventSink, LoggingEventSink
from .engine.filters import ContentFilter
from .engine.history import SyncHistoryRecorder
from .engine.matcher import MatchEngine
from .engine.search import SimilaritySearch, build_similarity_search
from .engine.sources import CrawlSource
from .engine.sync import SyncEngine
from .engine.types import SyncCounts, SyncMode, SyncReport
from .models import Page, SyncHistory


def get_config() -> CorpusConfig:
    """Load the engine configuration named by ``ANCHORLINK_CONFIG_PATH``."""

    return load_config(getattr(settings, 'ANCHORLINK_CONFIG_PATH', None) or None)


def build_embedding_provider(config: CorpusConfig | None = None) -> OpenAIEmbeddingProvider:
    config = config or get_config()
    return OpenAIEmbeddingProvider(
        getattr(settings, 'ANCHORLINK_OPENAI_API_KEY', None),
        model=config.get('embedding', 'model'),
    )


def build_match_engine(
    config: CorpusConfig | None = None,
    *,
    provider: EmbeddingProvider | None = None,
    search: SimilaritySearch | None = None,
    events: EventSink | None = None,
) -> MatchEngine:
    config = config or get_config()
    return MatchEngine(
        provider or build_embedding_provider(config),
        search or build_similarity_search(getattr(settings, 'ANCHORLINK_SIMILARITY_BACKEND', 'orm')),
        config,
        events=events or LoggingEventSink(),
    )


def build_backfill(
    config: CorpusConfig | None = None,
    *,
    provider: EmbeddingProvider | None = None,
    events: EventSink | None = None,
) -> EmbeddingBackfill:
    config = config or get_config()
    return EmbeddingBackfill(
        provider or build_embedding_provider(config),
        config,
        events=events or LoggingEventSink(),
    )


async def run_sync(
    source: CrawlSource,
    project_id: str,
    mode: SyncMode = SyncMode.FULL,
    *,
    config: CorpusConfig | None = None,
    events: EventSink | None = None,
    engine: SyncEngine | None = None,
) -> SyncReport:
    """Fetch the latest crawl, filter it and reconcile the corpus.

    The history row is finalized whatever happens: ``completed`` with the
    final counts, or ``failed`` with whatever had been counted when the run
    aborted, after which the error propagates to the caller.
    """

    config = config or get_config()
    events = events or LoggingEventSink()
    engine = engine or SyncEngine(config, events=events)
    recorder = SyncHistoryRecorder(events)

    snapshot = await source.fetch_latest(project_id)
    history = await recorder.start(snapshot.crawl, mode, snapshot.project_name)
    started = time.monotonic()
    counts = SyncCounts()

    try:
        filtered = ContentFilter(config, events).filter_pages(snapshot.pages)
        await engine.sync(filtered.pages, mode, counts)
    except Exception as exc:
        await recorder.finalize(history.pk, counts, _elapsed_ms(started), error=exc)
        raise

    duration_ms = _elapsed_ms(started)
    await recorder.finalize(history.pk, counts, duration_ms)
    return SyncReport(
        mode=mode,
        counts=counts,
        duration_ms=duration_ms,
        sync_history_id=history.pk,
        filter_stats=filtered.stats,
        filter_examples=filtered.examples,
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def corpus_stats() -> Dict[str, Any]:
    total = await Page.objects.acount()
    embedded = await Page.objects.filter(embedding__isnull=False).acount()
    last_sync: Optional[SyncHistory] = await SyncHistory.objects.order_by('-synced_at', '-id').afirst()
    return {
        'total_pages': total,
        'embedded_pages': embedded,
        'pending_embeddings': total - embedded,
        'last_sync': last_sync.as_dict() if last_sync else None,
    }
