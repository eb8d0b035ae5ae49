"""Turn anchor candidates into ranked internal-link suggestions."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from django.db import DatabaseError

from .config import CorpusConfig, load_config
from .embeddings import EmbeddingProvider
from .errors import AnchorlinkError, EmbeddingError
from .events import EventSink, NullEventSink
from .retry import TIMEOUT_ERRORS, RetryPolicy, Sleep, call_with_retry
from .search import SimilaritySearch
from .text import words
from .types import (
    AnchorCandidate,
    AnchorMatch,
    MatchedSection,
    MatchingResult,
    MatchOption,
    MatchStatus,
    SimilarPage,
)

ProgressCallback = Callable[[int, int], None]

MAX_ANCHOR_LENGTH = 200
MAX_SUGGESTIONS = 10
MIN_ABBREVIATION = 4
RELAXED_THRESHOLD_FLOOR = 0.5
RELAXED_THRESHOLD_MARGIN = 0.2
RELAXED_LIMIT_CAP = 20

SEARCH_ERRORS = (DatabaseError, AnchorlinkError, ValueError)


def relaxed_query(similarity_threshold: float, max_options: int) -> Tuple[float, int]:
    """Widen the search so section bonuses can promote pages just under the bar."""

    threshold = max(RELAXED_THRESHOLD_FLOOR, similarity_threshold - RELAXED_THRESHOLD_MARGIN)
    limit = min(max_options * 2, RELAXED_LIMIT_CAP)
    return threshold, max(limit, 1)


def _words_match(anchor_word: str, field_word: str) -> bool:
    if anchor_word == field_word:
        return True
    shorter, longer = sorted((anchor_word, field_word), key=len)
    return len(shorter) >= MIN_ABBREVIATION and longer.startswith(shorter)


def appears_in(anchor_text: str, field: Optional[str]) -> bool:
    """True when the anchor occurs in ``field`` literally or word by word.

    Word-level matching accepts abbreviated forms: each anchor word needs a
    field word that equals it or of which one is a whole prefix of the other
    (``prep`` and ``preparation``), the shorter being at least four characters.
    """

    if not field:
        return False
    anchor = anchor_text.strip().lower()
    if not anchor:
        return False
    if anchor in field.lower():
        return True
    anchor_words = words(anchor)
    field_words = words(field)
    if not anchor_words or not field_words:
        return False
    return all(any(_words_match(word, candidate) for candidate in field_words) for word in anchor_words)


def matched_section(anchor_text: str, page: SimilarPage) -> Tuple[MatchedSection, str]:
    if page.title and appears_in(anchor_text, page.title):
        return MatchedSection.TITLE, page.title
    if page.h1 and appears_in(anchor_text, page.h1):
        return MatchedSection.H1, page.h1
    if page.meta_description and appears_in(anchor_text, page.meta_description):
        return MatchedSection.META, page.meta_description
    return MatchedSection.SEMANTIC, page.h1 or page.title or "Content similarity detected"


def score_options(
    anchor_text: str,
    pages: Sequence[SimilarPage],
    similarity_threshold: float,
    max_options: int,
    bonuses: Dict[MatchedSection, float],
) -> List[MatchOption]:
    """Drop pages under the raw threshold, add section bonuses, rank and truncate."""

    options = []
    for page in pages:
        if page.similarity < similarity_threshold:
            continue
        section, content = matched_section(anchor_text, page)
        score = min(1.0, max(0.0, page.similarity + bonuses.get(section, 0.0)))
        options.append(
            MatchOption(
                id=page.id,
                title=page.title or "Untitled Page",
                url=page.url,
                description=page.meta_description or "No description available",
                matched_section=section,
                matched_content=content,
                relevance_score=round(score, 4),
            )
        )
    options.sort(key=lambda option: (-option.relevance_score, option.id))
    return options[:max_options]


class MatchEngine:
    """Embed each candidate, search the corpus and score the results.

    Candidates are processed one after another with a short pause in
    between. A search that keeps timing out degrades to an empty
    suggestion list; it is never padded with unrelated pages.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        search: SimilaritySearch,
        config: CorpusConfig | None = None,
        *,
        policy: RetryPolicy | None = None,
        events: EventSink | None = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.provider = provider
        self.search = search
        self.config = config or load_config()
        self.policy = policy or RetryPolicy.from_config(self.config)
        self.events = events or NullEventSink()
        self.sleep = sleep or asyncio.sleep
        self.bonuses = {section: self.config.section_bonus(section) for section in MatchedSection}

    async def match_candidate(
        self,
        candidate: AnchorCandidate,
        *,
        similarity_threshold: Optional[float] = None,
        max_options: Optional[int] = None,
    ) -> AnchorMatch:
        threshold = self.config.similarity_threshold if similarity_threshold is None else similarity_threshold
        limit = self.config.max_options if max_options is None else max_options
        started = time.monotonic()
        self.events.emit("match.candidate_started", anchor=candidate.text)

        try:
            embedding = await self.provider.embed(candidate.text)
        except EmbeddingError as exc:
            return self._finish(candidate, [], MatchStatus.FAILED, started, str(exc))

        query = json.dumps(embedding)
        query_threshold, query_limit = relaxed_query(threshold, limit)

        def _on_retry(attempt: int, delay: float, error: BaseException) -> None:
            self.events.emit(
                "match.search_retry",
                anchor=candidate.text,
                attempt=attempt,
                delay=delay,
                error=str(error) or type(error).__name__,
            )

        try:
            pages = await call_with_retry(
                lambda: self.search.search(query, query_threshold, query_limit),
                self.policy,
                sleep=self.sleep,
                on_retry=_on_retry,
            )
        except TIMEOUT_ERRORS as exc:
            reason = str(exc) or "Similarity search timed out"
            return self._finish(candidate, [], MatchStatus.DEGRADED, started, reason)
        except SEARCH_ERRORS as exc:
            return self._finish(candidate, [], MatchStatus.FAILED, started, str(exc))

        options = score_options(candidate.text, pages, threshold, limit, self.bonuses)
        return self._finish(candidate, options, MatchStatus.SUCCEEDED, started)

    def _finish(
        self,
        candidate: AnchorCandidate,
        options: List[MatchOption],
        status: MatchStatus,
        started: float,
        error: Optional[str] = None,
    ) -> AnchorMatch:
        duration_ms = int((time.monotonic() - started) * 1000)
        self.events.emit(
            "match.candidate_completed",
            anchor=candidate.text,
            status=status.value,
            options=len(options),
            duration_ms=duration_ms,
            error=error,
        )
        return AnchorMatch(anchor=candidate, options=options, status=status, error=error, duration_ms=duration_ms)

    async def match_candidates(
        self,
        candidates: Sequence[AnchorCandidate],
        *,
        similarity_threshold: Optional[float] = None,
        max_options: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MatchingResult:
        total = len(candidates)
        anchors: List[AnchorMatch] = []
        for index, candidate in enumerate(candidates):
            anchors.append(
                await self.match_candidate(
                    candidate,
                    similarity_threshold=similarity_threshold,
                    max_options=max_options,
                )
            )
            if on_progress is not None:
                on_progress(index + 1, total)
            if index < total - 1:
                await self.sleep(self.config.candidate_delay)

        result = MatchingResult(anchors=anchors)
        self.events.emit(
            "match.batch_completed",
            candidates=result.total_candidates,
            anchors_with_matches=len(result.matches),
            options=result.total_matches,
            average_score=result.average_score,
        )
        return result

    async def match_text(self, anchor_text: str, max_suggestions: int = 5) -> AnchorMatch:
        """Suggestions for a single free-text anchor, capped at ten."""

        text = anchor_text.strip()
        if not text:
            raise ValueError("Anchor text must be a non-empty string")
        if len(text) > MAX_ANCHOR_LENGTH:
            raise ValueError(f"Anchor text must be {MAX_ANCHOR_LENGTH} characters or less")
        limit = max(1, min(max_suggestions, MAX_SUGGESTIONS))
        return await self.match_candidate(AnchorCandidate.from_text(text), max_options=limit)
