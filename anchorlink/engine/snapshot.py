"""Paginated reads of the stored corpus used for reconciliation."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Set

from django.db import DatabaseError

from ..models import Page
from .config import CorpusConfig, load_config
from .errors import SnapshotReadError
from .events import EventSink, NullEventSink
from .normalizer import COMPARED_FIELDS
from .retry import TIMEOUT_ERRORS, RetryPolicy, Sleep, call_with_retry

SnapshotRow = Dict[str, Any]

FULL_FIELDS = ("id", "url") + COMPARED_FIELDS
READ_ERRORS = TIMEOUT_ERRORS + (DatabaseError,)


class CorpusSnapshotReader:
    """Read the corpus in primary-key order, one bounded page at a time.

    The row count is taken first; a snapshot that comes back short of it is
    treated as a failed read so reconciliation never works from a partial
    view (a partial view would make present pages look stale).
    """

    def __init__(
        self,
        config: CorpusConfig | None = None,
        *,
        policy: RetryPolicy | None = None,
        events: EventSink | None = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.config = config or load_config()
        self.policy = policy or RetryPolicy.from_config(self.config)
        self.events = events or NullEventSink()
        self.sleep = sleep

    async def read_full(self) -> Dict[str, SnapshotRow]:
        """Return change-detection columns keyed by URL; embeddings are not loaded."""

        batch_size = int(self.config.get("snapshot", "full_batch_size"))
        rows = await self._read("full", FULL_FIELDS, batch_size)
        return {row["url"]: row for row in rows}

    async def read_urls(self) -> Set[str]:
        batch_size = int(self.config.get("snapshot", "url_batch_size"))
        rows = await self._read("url_only", ("id", "url"), batch_size)
        return {row["url"] for row in rows}

    async def _read(self, mode: str, fields: Sequence[str], batch_size: int) -> List[SnapshotRow]:
        total = await self._guarded(lambda: Page.objects.acount(), "count")
        rows: List[SnapshotRow] = []
        last_pk = 0
        page_number = 0

        while len(rows) < total:
            page_number += 1
            chunk = await self._guarded(
                lambda: self._fetch(fields, last_pk, batch_size),
                f"page {page_number}",
            )
            if not chunk:
                break
            rows.extend(chunk)
            last_pk = chunk[-1]["id"]
            self.events.emit(
                "snapshot.page_read",
                mode=mode,
                page=page_number,
                rows=len(chunk),
                loaded=len(rows),
                total=total,
            )

        if len(rows) < total:
            raise SnapshotReadError(f"Snapshot incomplete: read {len(rows)} of {total} rows")

        self.events.emit("snapshot.completed", mode=mode, rows=len(rows), pages=page_number)
        return rows

    async def _fetch(self, fields: Sequence[str], after_pk: int, limit: int) -> List[SnapshotRow]:
        queryset = Page.objects.filter(pk__gt=after_pk).order_by("pk").values(*fields)[:limit]
        return [row async for row in queryset]

    async def _guarded(self, operation, label: str):
        try:
            return await call_with_retry(
                operation,
                self.policy,
                retry_on=READ_ERRORS,
                sleep=self.sleep,
            )
        except READ_ERRORS as exc:
            raise SnapshotReadError(f"Snapshot read failed at {label}: {exc}") from exc
