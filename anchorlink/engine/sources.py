"""Crawl sources feeding raw page records into a sync run."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from asgiref.sync import sync_to_async

from .errors import CrawlSourceError
from .types import RAW_FIELDS, CrawlInfo, RawPage


@dataclass(frozen=True)
class CrawlSnapshot:
    crawl: CrawlInfo
    pages: List[RawPage] = field(default_factory=list)
    project_name: Optional[str] = None


class CrawlSource(Protocol):
    async def fetch_latest(self, project_id: str) -> CrawlSnapshot:
        ...


def parse_export(lines: Iterable[str], delimiter: str = ";") -> List[RawPage]:
    """Parse a provider page export; every value stays a string, blanks become ``None``."""

    reader = csv.DictReader(lines, delimiter=delimiter)
    if reader.fieldnames is None:
        return []
    columns = [name.strip() for name in reader.fieldnames]
    if "url" not in columns:
        raise CrawlSourceError("Crawl export has no 'url' column")
    reader.fieldnames = columns

    pages = []
    for record in reader:
        values = {}
        for name in RAW_FIELDS:
            value = record.get(name)
            if value is None:
                continue
            value = value.strip()
            values[name] = value or None
        if values.get("url"):
            pages.append(RawPage.from_mapping(values))
    return pages


class CsvExportSource:
    """Read a semicolon separated page export downloaded from the crawler."""

    def __init__(
        self,
        path: str | Path,
        *,
        crawl_id: Optional[str] = None,
        crawl_name: Optional[str] = None,
        project_name: Optional[str] = None,
        delimiter: str = ";",
    ) -> None:
        self.path = Path(path)
        self.crawl_id = crawl_id or self.path.stem
        self.crawl_name = crawl_name
        self.project_name = project_name
        self.delimiter = delimiter

    def read_pages(self) -> List[RawPage]:
        try:
            with self.path.open("r", encoding="utf-8-sig", newline="") as stream:
                return parse_export(stream, delimiter=self.delimiter)
        except OSError as exc:
            raise CrawlSourceError(f"Could not read crawl export {self.path}: {exc}") from exc
        except csv.Error as exc:
            raise CrawlSourceError(f"Malformed crawl export {self.path}: {exc}") from exc

    async def fetch_latest(self, project_id: str) -> CrawlSnapshot:
        pages = await sync_to_async(self.read_pages, thread_sensitive=False)()
        crawl = CrawlInfo(project_id=project_id, crawl_id=self.crawl_id, crawl_name=self.crawl_name)
        return CrawlSnapshot(crawl=crawl, pages=pages, project_name=self.project_name)
