"""Turn raw crawl records into typed pages and compare them with stored rows."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional

from .text import clean_text
from .types import ProcessedPage, RawPage

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_ARTICLE_ID_RE = re.compile(r",\d+\.")

TEXT_FIELDS = ("title", "meta_description", "h1")
CONTENT_FIELDS = TEXT_FIELDS
NUMERIC_FIELDS = ("word_count", "depth", "inrank_decimal", "internal_outlinks", "nb_inlinks")
COMPARED_FIELDS = TEXT_FIELDS + ("word_count", "category", "depth", "inrank_decimal", "internal_outlinks", "nb_inlinks")


def parse_numeric(value: Optional[str]) -> Optional[float]:
    """Parse a provider number; anything missing, malformed or non-finite is ``None``."""

    if value is None:
        return None
    text = value.strip()
    if not text or not _NUMBER_RE.match(text):
        return None
    number = float(text)
    if not math.isfinite(number):
        return None
    return number


def parse_count(value: Optional[str]) -> Optional[int]:
    number = parse_numeric(value)
    if number is None:
        return None
    return int(round(number))


def categorize_url(url: str) -> str:
    """Classify a page from the shape of its URL."""

    slashes = url.count("/")
    if "/tags/" in url or (url.endswith("/") and slashes <= 4):
        return "category"
    if ".html" in url or _ARTICLE_ID_RE.search(url):
        return "article"
    if slashes <= 3:
        return "page"
    return "unknown"


def normalize_page(raw: RawPage) -> ProcessedPage:
    url = raw.url.strip()
    return ProcessedPage(
        url=url,
        title=clean_text(raw.title),
        meta_description=clean_text(raw.meta_description),
        h1=clean_text(raw.h1),
        word_count=parse_count(raw.word_count),
        category=categorize_url(url),
        depth=parse_count(raw.depth),
        inrank_decimal=parse_numeric(raw.inrank_decimal),
        internal_outlinks=parse_count(raw.internal_outlinks),
        nb_inlinks=parse_count(raw.nb_inlinks),
    )


def comparable(value: Any) -> Any:
    """Normalize a stored or fresh value so equal content compares equal."""

    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return round(float(value), 6)
    return value


def _value(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def changed_fields(existing: Any, fresh: ProcessedPage, fields=COMPARED_FIELDS) -> list:
    return [name for name in fields if comparable(_value(existing, name)) != comparable(getattr(fresh, name))]


def has_page_changed(existing: Any, fresh: ProcessedPage) -> bool:
    return bool(changed_fields(existing, fresh))


def has_content_changed(existing: Any, fresh: ProcessedPage) -> bool:
    """True when a field the embedding was computed from differs."""

    return bool(changed_fields(existing, fresh, CONTENT_FIELDS))
