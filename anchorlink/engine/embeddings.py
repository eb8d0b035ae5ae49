"""Embedding providers and the corpus backfill."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from ..models import Page
from .config import CorpusConfig, load_config
from .errors import ConfigurationError, EmbeddingError
from .events import EventSink, NullEventSink
from .retry import Sleep


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


class OpenAIEmbeddingProvider:
    """Embed text through the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "text-embedding-3-small",
        client: Any = None,
    ) -> None:
        if client is None and not api_key:
            raise ConfigurationError("An OpenAI API key is required to compute embeddings.")
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc
        if not response.data:
            raise EmbeddingError("Embedding response contained no vectors")
        return list(response.data[0].embedding)


def build_page_text(title: Optional[str], h1: Optional[str], meta_description: Optional[str]) -> str:
    """Text embedded for a page: title twice, h1 twice when distinct, meta once."""

    title = (title or "").strip()
    h1 = (h1 or "").strip()
    meta = (meta_description or "").strip()
    parts: List[str] = []
    if title:
        parts.extend([title, title])
    if h1 and h1 != title:
        parts.extend([h1, h1])
    if meta:
        parts.append(meta)
    return " ".join(parts)


@dataclass
class BackfillReport:
    embedded: int = 0
    skipped: int = 0
    superseded: int = 0
    failed: int = 0
    duration_ms: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class EmbeddingBackfill:
    """Compute embeddings for pages that have none, one page at a time.

    A vector is only stored if the page still carries the text it was
    computed from; a page whose content changed in the meantime is left
    for the next run.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: CorpusConfig | None = None,
        *,
        events: EventSink | None = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.provider = provider
        self.config = config or load_config()
        self.events = events or NullEventSink()
        self.sleep = sleep or asyncio.sleep
        self.batch_size = int(self.config.get("backfill", "batch_size"))
        self.delay = float(self.config.get("backfill", "delay"))

    async def run(self, limit: Optional[int] = None) -> BackfillReport:
        started = time.monotonic()
        report = BackfillReport()
        last_pk = 0
        processed = 0

        while limit is None or processed < limit:
            size = self.batch_size if limit is None else min(self.batch_size, limit - processed)
            queryset = (
                Page.objects.filter(embedding__isnull=True, pk__gt=last_pk)
                .order_by("pk")
                .values("id", "url", "title", "h1", "meta_description")[:size]
            )
            rows = [row async for row in queryset]
            if not rows:
                break
            for row in rows:
                last_pk = row["id"]
                processed += 1
                await self._embed_row(row, report)
                await self.sleep(self.delay)

        report.duration_ms = int((time.monotonic() - started) * 1000)
        self.events.emit("backfill.completed", **report.as_dict())
        return report

    async def _embed_row(self, row: Dict[str, Any], report: BackfillReport) -> None:
        text = build_page_text(row["title"], row["h1"], row["meta_description"])
        if not text:
            report.skipped += 1
            return
        try:
            vector = await self.provider.embed(text)
        except EmbeddingError as exc:
            report.failed += 1
            self.events.emit("backfill.page_failed", page_id=row["id"], url=row["url"], error=str(exc))
            return

        written = await Page.objects.filter(
            pk=row["id"],
            embedding__isnull=True,
            title=row["title"],
            h1=row["h1"],
            meta_description=row["meta_description"],
        ).aupdate(embedding=vector)
        if written:
            report.embedded += 1
        else:
            report.superseded += 1
