"""Reconcile a fresh crawl with the stored corpus in bounded, isolated batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Tuple

from asgiref.sync import sync_to_async
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import Page
from .config import CorpusConfig, load_config
from .errors import BatchPersistenceError
from .events import EventSink, NullEventSink
from .normalizer import has_content_changed, has_page_changed
from .snapshot import CorpusSnapshotReader, SnapshotRow
from .types import ProcessedPage, SyncCounts, SyncMode

PageUpdate = Tuple[int, Dict[str, Any]]


@dataclass
class Categorized:
    new: List[ProcessedPage] = field(default_factory=list)
    changed: List[Tuple[SnapshotRow, ProcessedPage]] = field(default_factory=list)
    unchanged: List[ProcessedPage] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)


def deduplicate(pages: Sequence[ProcessedPage]) -> List[ProcessedPage]:
    """Keep one page per URL; the last occurrence wins."""

    by_url: Dict[str, ProcessedPage] = {}
    for page in pages:
        by_url[page.url] = page
    return list(by_url.values())


def categorize(pages: Sequence[ProcessedPage], existing: Dict[str, SnapshotRow]) -> Categorized:
    result = Categorized()
    fresh_urls = set()
    for page in pages:
        fresh_urls.add(page.url)
        row = existing.get(page.url)
        if row is None:
            result.new.append(page)
        elif has_page_changed(row, page):
            result.changed.append((row, page))
        else:
            result.unchanged.append(page)
    result.stale = [url for url in existing if url not in fresh_urls]
    return result


def update_values(row: SnapshotRow, page: ProcessedPage) -> Dict[str, Any]:
    """Column values for an update; the embedding is only touched when it goes stale."""

    values = page.field_values()
    if has_content_changed(row, page):
        values["embedding"] = None
    return values


class SyncEngine:
    """Apply inserts, updates and deletes for one sync mode.

    Every batch commits on its own. A failing batch is counted in
    ``failed`` and the run moves on; earlier batches are not rolled back.
    """

    def __init__(
        self,
        config: CorpusConfig | None = None,
        *,
        events: EventSink | None = None,
        snapshot: CorpusSnapshotReader | None = None,
    ) -> None:
        self.config = config or load_config()
        self.events = events or NullEventSink()
        self.snapshot = snapshot or CorpusSnapshotReader(self.config, events=self.events)

    async def sync(
        self,
        pages: Sequence[ProcessedPage],
        mode: SyncMode = SyncMode.FULL,
        counts: SyncCounts | None = None,
    ) -> SyncCounts:
        """Reconcile ``pages`` with the corpus.

        ``counts`` is updated in place so a caller still holds the partial
        totals if the run is aborted part way.
        """

        counts = counts if counts is not None else SyncCounts()
        pages = deduplicate(pages)
        if mode is SyncMode.FULL:
            await self._sync_full(pages, counts)
        else:
            await self._sync_quick(pages, mode, counts)
        self.events.emit("sync.completed", mode=mode.value, **counts.as_dict())
        return counts

    async def _sync_full(self, pages: Sequence[ProcessedPage], counts: SyncCounts) -> None:
        existing = await self.snapshot.read_full()
        groups = categorize(pages, existing)
        counts.unchanged = len(groups.unchanged)
        self.events.emit(
            "sync.categorized",
            mode=SyncMode.FULL.value,
            new=len(groups.new),
            changed=len(groups.changed),
            unchanged=len(groups.unchanged),
            stale=len(groups.stale),
        )

        await self._run_batches("insert", groups.new, self._insert_batch, counts, "added")
        updates = [(row["id"], update_values(row, page)) for row, page in groups.changed]
        await self._run_batches("update", updates, self._update_batch, counts, "updated")
        await self._run_batches("delete", groups.stale, self._delete_batch, counts, "removed")

    async def _sync_quick(self, pages: Sequence[ProcessedPage], mode: SyncMode, counts: SyncCounts) -> None:
        existing_urls = await self.snapshot.read_urls()
        new = [page for page in pages if page.url not in existing_urls]
        present = [page for page in pages if page.url in existing_urls]
        fresh_urls = {page.url for page in pages}
        stale = [url for url in existing_urls if url not in fresh_urls]
        self.events.emit(
            "sync.categorized",
            mode=mode.value,
            new=len(new),
            changed=len(present) if mode is SyncMode.URL_CONTENT else 0,
            unchanged=len(present) if mode is SyncMode.URL_ONLY else 0,
            stale=len(stale),
        )

        await self._run_batches("insert", new, self._insert_batch, counts, "added")
        if mode is SyncMode.URL_CONTENT:
            await self._run_batches("overwrite", present, self._overwrite_batch, counts, "updated")
        else:
            counts.unchanged = len(present)
        await self._run_batches("delete", stale, self._delete_batch, counts, "removed")

    async def _run_batches(
        self,
        operation: str,
        items: Sequence[Any],
        writer: Callable[[Sequence[Any]], Awaitable[int]],
        counts: SyncCounts,
        counter: str,
    ) -> None:
        size = self.config.batch_size("update" if operation == "overwrite" else operation)
        for batch_number, start in enumerate(range(0, len(items), size), start=1):
            batch = items[start:start + size]
            try:
                written = await writer(batch)
            except BatchPersistenceError as exc:
                counts.failed += len(batch)
                self.events.emit(
                    "sync.batch_failed",
                    operation=operation,
                    batch=batch_number,
                    size=len(batch),
                    error=str(exc.cause),
                )
                continue
            setattr(counts, counter, getattr(counts, counter) + written)
            self.events.emit("sync.batch_written", operation=operation, batch=batch_number, rows=written)

    async def _insert_batch(self, pages: Sequence[ProcessedPage]) -> int:
        return await sync_to_async(self._write, thread_sensitive=True)("insert", _insert, pages)

    async def _update_batch(self, updates: Sequence[PageUpdate]) -> int:
        return await sync_to_async(self._write, thread_sensitive=True)("update", _update, updates)

    async def _overwrite_batch(self, pages: Sequence[ProcessedPage]) -> int:
        return await sync_to_async(self._write, thread_sensitive=True)("overwrite", _overwrite, pages)

    async def _delete_batch(self, urls: Sequence[str]) -> int:
        return await sync_to_async(self._write, thread_sensitive=True)("delete", _delete, urls)

    @staticmethod
    def _write(operation: str, writer: Callable[[Sequence[Any]], int], items: Sequence[Any]) -> int:
        try:
            with transaction.atomic():
                return writer(items)
        except DatabaseError as exc:
            raise BatchPersistenceError(operation, len(items), exc) from exc


def _insert(pages: Sequence[ProcessedPage]) -> int:
    created = Page.objects.bulk_create(
        [Page(url=page.url, embedding=None, **page.field_values()) for page in pages]
    )
    return len(created)


def _update(updates: Sequence[PageUpdate]) -> int:
    written = 0
    for pk, values in updates:
        written += Page.objects.filter(pk=pk).update(updated_at=timezone.now(), **values)
    return written


def _overwrite(pages: Sequence[ProcessedPage]) -> int:
    written = 0
    for page in pages:
        written += Page.objects.filter(url=page.url).update(updated_at=timezone.now(), **page.field_values())
    return written


def _delete(urls: Sequence[str]) -> int:
    _, per_model = Page.objects.filter(url__in=list(urls)).delete()
    return per_model.get(Page._meta.label, 0)
