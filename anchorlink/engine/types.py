"""Typed data structures shared by the sync pipeline and the matcher."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

RAW_FIELDS = (
    "url",
    "title",
    "meta_description",
    "h1",
    "word_count",
    "depth",
    "inrank_decimal",
    "internal_outlinks",
    "nb_inlinks",
    "status_code",
)


@dataclass(frozen=True)
class RawPage:
    """One page record as delivered by the crawl provider.

    Every field is a string or ``None``; numbers included. Nothing at this
    boundary is trusted to be numeric until the normalizer has parsed it.
    """

    url: str
    title: Optional[str] = None
    meta_description: Optional[str] = None
    h1: Optional[str] = None
    word_count: Optional[str] = None
    depth: Optional[str] = None
    inrank_decimal: Optional[str] = None
    internal_outlinks: Optional[str] = None
    nb_inlinks: Optional[str] = None
    status_code: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RawPage":
        """Build a record from a provider payload, coercing values to strings."""

        values: Dict[str, Optional[str]] = {}
        for name in RAW_FIELDS:
            value = data.get(name)
            if value is None:
                values[name] = None
            elif isinstance(value, str):
                values[name] = value
            else:
                values[name] = str(value)
        values["url"] = values["url"] or ""
        return cls(**values)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ProcessedPage:
    """Normalized, typed page ready for reconciliation against the corpus."""

    url: str
    title: Optional[str]
    meta_description: Optional[str]
    h1: Optional[str]
    word_count: Optional[int]
    category: str
    depth: Optional[int]
    inrank_decimal: Optional[float]
    internal_outlinks: Optional[int]
    nb_inlinks: Optional[int]

    def field_values(self) -> Dict[str, Any]:
        """Return the persisted column values, ``url`` excluded."""

        values = asdict(self)
        values.pop("url")
        return values


@dataclass(frozen=True)
class CrawlInfo:
    """Identifies the crawl snapshot a sync run was fed from."""

    project_id: str
    crawl_id: str
    crawl_name: Optional[str] = None


class SyncMode(str, Enum):
    FULL = "full"
    URL_ONLY = "url_only"
    URL_CONTENT = "url_content"


class RejectionCategory(str, Enum):
    NO_CONTENT = "no-content"
    URL_PATTERN = "url-pattern"
    FORUM_CONTENT = "forum-content"
    STATUS_CODE = "status-code"


@dataclass(frozen=True)
class Rejection:
    """Why a raw record was kept out of the corpus."""

    category: RejectionCategory
    reason: str


@dataclass
class FilterStats:
    total: int = 0
    no_content: int = 0
    url_pattern: int = 0
    forum_content: int = 0
    status_code: int = 0
    kept: int = 0

    def record(self, category: RejectionCategory) -> None:
        attribute = _STATS_ATTRIBUTES[category]
        setattr(self, attribute, getattr(self, attribute) + 1)

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


_STATS_ATTRIBUTES = {
    RejectionCategory.NO_CONTENT: "no_content",
    RejectionCategory.URL_PATTERN: "url_pattern",
    RejectionCategory.FORUM_CONTENT: "forum_content",
    RejectionCategory.STATUS_CODE: "status_code",
}


@dataclass
class FilterExamples:
    """Bounded samples of rejected URLs, kept for diagnostics only."""

    limit: int = 10
    samples: Dict[RejectionCategory, List[Dict[str, str]]] = field(default_factory=dict)

    def add(self, category: RejectionCategory, url: str, reason: str) -> None:
        bucket = self.samples.setdefault(category, [])
        if len(bucket) < self.limit:
            bucket.append({"url": url, "reason": reason})

    def for_category(self, category: RejectionCategory) -> List[Dict[str, str]]:
        return list(self.samples.get(category, []))

    def as_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {category.value: list(items) for category, items in self.samples.items()}


@dataclass(frozen=True)
class FilterResult:
    pages: List[ProcessedPage]
    stats: FilterStats
    examples: FilterExamples


@dataclass
class SyncCounts:
    """Running totals for a sync run; partial values survive a failed run."""

    added: int = 0
    updated: int = 0
    unchanged: int = 0
    removed: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one sync run as returned to the caller."""

    mode: SyncMode
    counts: SyncCounts
    duration_ms: int
    sync_history_id: Optional[int]
    filter_stats: FilterStats
    filter_examples: FilterExamples

    @property
    def processed(self) -> int:
        return self.counts.added + self.counts.updated + self.counts.unchanged

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.counts.as_dict()
        data.update(
            {
                "processed": self.processed,
                "mode": self.mode.value,
                "duration_ms": self.duration_ms,
                "sync_history_id": self.sync_history_id,
                "filter_stats": self.filter_stats.as_dict(),
                "filter_examples": self.filter_examples.as_dict(),
            }
        )
        return data


@dataclass(frozen=True)
class AnchorCandidate:
    """A span of article text proposed as link text."""

    text: str
    start_index: int = 0
    end_index: int = 0
    context_before: str = ""
    context_after: str = ""

    @classmethod
    def from_text(cls, text: str) -> "AnchorCandidate":
        return cls(text=text, start_index=0, end_index=len(text))


class MatchedSection(str, Enum):
    TITLE = "Title"
    H1 = "H1"
    META = "Meta"
    SEMANTIC = "Semantic"


@dataclass(frozen=True)
class SimilarPage:
    """One row of the similarity search contract."""

    id: int
    url: str
    title: Optional[str]
    meta_description: Optional[str]
    h1: Optional[str]
    similarity: float
    embedding: Optional[List[float]] = None


@dataclass(frozen=True)
class MatchOption:
    id: int
    title: str
    url: str
    description: str
    matched_section: MatchedSection
    matched_content: str
    relevance_score: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "matchedSection": self.matched_section.value,
            "matchedContent": self.matched_content,
            "relevanceScore": self.relevance_score,
        }


class MatchStatus(str, Enum):
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class AnchorMatch:
    anchor: AnchorCandidate
    options: List[MatchOption]
    status: MatchStatus
    error: Optional[str] = None
    duration_ms: int = 0


@dataclass(frozen=True)
class MatchingResult:
    anchors: List[AnchorMatch]

    @property
    def matches(self) -> List[AnchorMatch]:
        """Anchors that produced at least one option."""

        return [item for item in self.anchors if item.options]

    @property
    def total_candidates(self) -> int:
        return len(self.anchors)

    @property
    def total_matches(self) -> int:
        return sum(len(item.options) for item in self.anchors)

    @property
    def average_score(self) -> float:
        scores = [option.relevance_score for item in self.anchors for option in item.options]
        if not scores:
            return 0.0
        return round(sum(scores) / len(scores), 2)
