"""Audit trail of sync runs."""

from __future__ import annotations

from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from ..models import SyncHistory
from .errors import SyncHistoryError
from .events import EventSink, NullEventSink
from .types import CrawlInfo, SyncCounts, SyncMode


def project_display_name(project_id: str, project_name: Optional[str] = None) -> str:
    return project_name or f"Project {project_id}"


class SyncHistoryRecorder:
    """Create a history row when a run starts and finalize it exactly once."""

    def __init__(self, events: EventSink | None = None) -> None:
        self.events = events or NullEventSink()

    async def start(
        self,
        crawl: CrawlInfo,
        mode: SyncMode,
        project_name: Optional[str] = None,
    ) -> SyncHistory:
        try:
            history = await SyncHistory.objects.acreate(
                project_id=crawl.project_id,
                project_name=project_display_name(crawl.project_id, project_name),
                crawl_id=crawl.crawl_id,
                crawl_name=crawl.crawl_name or "",
                mode=mode.value,
                status=SyncHistory.STATUS_RUNNING,
            )
        except DatabaseError as exc:
            raise SyncHistoryError(f"Could not create sync history: {exc}") from exc
        self.events.emit(
            "history.started",
            sync_history_id=history.pk,
            project_id=crawl.project_id,
            crawl_id=crawl.crawl_id,
            mode=mode.value,
        )
        return history

    async def finalize(
        self,
        history_id: int,
        counts: SyncCounts,
        duration_ms: int,
        *,
        error: Optional[BaseException] = None,
    ) -> None:
        """Write the final counts; a row that is already finalized is refused."""

        status = SyncHistory.STATUS_FAILED if error is not None else SyncHistory.STATUS_COMPLETED
        try:
            updated = await SyncHistory.objects.filter(
                pk=history_id,
                finalized_at__isnull=True,
            ).aupdate(
                pages_added=counts.added,
                pages_updated=counts.updated,
                pages_unchanged=counts.unchanged,
                pages_removed=counts.removed,
                pages_failed=counts.failed,
                duration_ms=max(duration_ms, 0),
                status=status,
                error=str(error) if error is not None else "",
                finalized_at=timezone.now(),
            )
        except DatabaseError as exc:
            raise SyncHistoryError(f"Could not finalize sync history {history_id}: {exc}") from exc
        if updated == 0:
            raise SyncHistoryError(f"Sync history {history_id} is missing or already finalized")
        self.events.emit(
            "history.finalized",
            sync_history_id=history_id,
            status=status,
            duration_ms=duration_ms,
            **counts.as_dict(),
        )
