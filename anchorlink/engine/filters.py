"""Content filter deciding which crawled records are worth linking to."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import CorpusConfig, load_config
from .events import EventSink, NullEventSink
from .normalizer import normalize_page, parse_count
from .text import fold_apostrophes, words
from .types import FilterExamples, FilterResult, FilterStats, RawPage, Rejection, RejectionCategory

MIN_CONTENT_LENGTH = 3
MIN_URL_LENGTH = 8


@dataclass(frozen=True)
class ContentValidation:
    has_title: bool
    has_h1: bool
    has_meta_description: bool
    combined_length: int
    reason: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.reason is None


def validate_content(raw: RawPage) -> ContentValidation:
    """Check that title, h1 and meta description together carry some text."""

    title = (raw.title or "").strip()
    h1 = (raw.h1 or "").strip()
    meta = (raw.meta_description or "").strip()
    combined = " ".join(part for part in (title, h1, meta) if part)

    reason = None
    if not combined:
        reason = "No embeddable content (title, h1, meta_description all empty)"
    elif len(combined) < MIN_CONTENT_LENGTH:
        reason = f"Content too short ({len(combined)} chars)"
    return ContentValidation(
        has_title=bool(title),
        has_h1=bool(h1),
        has_meta_description=bool(meta),
        combined_length=len(combined),
        reason=reason,
    )


def _truncate(url: str, limit: int) -> str:
    return url[:limit] + ("..." if len(url) > limit else "")


def _contains_sequence(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    size = len(needle)
    return any(list(haystack[index:index + size]) == list(needle) for index in range(len(haystack) - size + 1))


class ForumDetector:
    """Spot conversational, first-person text typical of forum threads."""

    def __init__(self, indicators: Iterable[str]) -> None:
        self.phrases: List[Tuple[str, ...]] = []
        self.fragments: List[str] = []
        for indicator in indicators:
            folded = fold_apostrophes(indicator.lower())
            tokens = tuple(words(folded))
            if tokens:
                self.phrases.append(tokens)
            else:
                self.fragments.append(folded)

    def __call__(self, text: str) -> bool:
        folded = fold_apostrophes(text.lower())
        if any(fragment in folded for fragment in self.fragments):
            return True
        tokens = words(folded)
        return any(_contains_sequence(tokens, phrase) for phrase in self.phrases)


class ContentFilter:
    """Apply the exclusion rules in order; the first failing rule wins."""

    def __init__(self, config: CorpusConfig | None = None, events: EventSink | None = None) -> None:
        self.config = config or load_config()
        self.events = events or NullEventSink()
        self.url_phrases = self.config.url_phrases
        self.site_patterns = self.config.site_patterns
        self.is_forum = ForumDetector(self.config.forum_indicators)

    def check(self, raw: RawPage) -> Optional[Rejection]:
        """Return the rejection for ``raw``, or ``None`` when it should be kept."""

        status = parse_count(raw.status_code)
        if status is not None and status != 200:
            return Rejection(RejectionCategory.STATUS_CODE, f"Status code {status}")

        validation = validate_content(raw)
        if not validation.is_valid:
            return Rejection(RejectionCategory.NO_CONTENT, validation.reason or "No content")

        reason = self._url_rejection(raw.url or "")
        if reason:
            return Rejection(RejectionCategory.URL_PATTERN, reason)

        if raw.meta_description and self.is_forum(raw.meta_description):
            return Rejection(RejectionCategory.FORUM_CONTENT, "Forum content detected in meta description")
        return None

    def _url_rejection(self, url: str) -> Optional[str]:
        if len(url) < MIN_URL_LENGTH:
            return "URL too short"
        if "\n" in url or "\r" in url or ";200;" in url or not url.startswith("http"):
            return "Malformed URL"

        lowered = url.lower()
        for phrase in self.url_phrases:
            if phrase in lowered:
                return f"Contains excluded phrase: {phrase}"

        path_start = url.find("/", 8)
        if path_start != -1:
            path = url[path_start:].lower()
            for pattern in self.site_patterns:
                if pattern in path:
                    return f"Site-specific pattern: {pattern}"
        return None

    def filter_pages(self, raws: Iterable[RawPage]) -> FilterResult:
        started = time.monotonic()
        stats = FilterStats()
        examples = FilterExamples()
        pages = []

        for raw in raws:
            stats.total += 1
            rejection = self.check(raw)
            if rejection is None:
                pages.append(normalize_page(raw))
                stats.kept += 1
                continue
            stats.record(rejection.category)
            limit = 80 if rejection.category is RejectionCategory.NO_CONTENT else 60
            examples.add(rejection.category, _truncate(raw.url or "", limit), rejection.reason)

        self.events.emit(
            "filter.completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            **stats.as_dict(),
        )
        return FilterResult(pages=pages, stats=stats, examples=examples)
