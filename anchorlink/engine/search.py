"""Similarity search backends.

Both backends honour the same contract: given a JSON-encoded query vector, a
minimum similarity and a row limit, return matching pages ordered by
similarity, highest first.
"""

from __future__ import annotations

import heapq
import json
from typing import Any, List, Optional, Protocol, Sequence

from asgiref.sync import sync_to_async
from django.db import OperationalError, connections

from ..models import Page
from .errors import ConfigurationError, SearchTimeoutError
from .text import cosine_similarity
from .types import SimilarPage

_TIMEOUT_MARKERS = ("statement timeout", "canceling statement", "query_canceled")


class SimilaritySearch(Protocol):
    async def search(
        self,
        query_embedding: str,
        similarity_threshold: float,
        match_limit: int,
    ) -> List[SimilarPage]:
        ...


def _vector(value: Any) -> Optional[List[float]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return [float(item) for item in value]


class OrmSimilaritySearch:
    """Score every embedded page in Python; portable across database engines."""

    chunk_size = 2000

    async def search(
        self,
        query_embedding: str,
        similarity_threshold: float,
        match_limit: int,
    ) -> List[SimilarPage]:
        query = _vector(query_embedding) or []
        return await sync_to_async(self._search, thread_sensitive=True)(
            query, similarity_threshold, match_limit
        )

    def _search(self, query: Sequence[float], similarity_threshold: float, match_limit: int) -> List[SimilarPage]:
        rows = (
            Page.objects.filter(embedding__isnull=False)
            .values("id", "url", "title", "meta_description", "h1", "embedding")
            .iterator(chunk_size=self.chunk_size)
        )
        scored = []
        for row in rows:
            embedding = _vector(row["embedding"])
            similarity = cosine_similarity(query, embedding or [])
            if similarity >= similarity_threshold:
                scored.append(
                    SimilarPage(
                        id=row["id"],
                        url=row["url"],
                        title=row["title"],
                        meta_description=row["meta_description"],
                        h1=row["h1"],
                        similarity=similarity,
                        embedding=embedding,
                    )
                )
        return heapq.nlargest(match_limit, scored, key=lambda page: (page.similarity, -page.id))


class SqlFunctionSimilaritySearch:
    """Delegate to the server-side ``find_similar_pages`` function (PostgreSQL)."""

    sql = (
        "SELECT id, url, title, meta_description, h1, embedding, similarity "
        "FROM find_similar_pages(%s, %s, %s)"
    )

    def __init__(self, using: str = "default") -> None:
        self.using = using

    async def search(
        self,
        query_embedding: str,
        similarity_threshold: float,
        match_limit: int,
    ) -> List[SimilarPage]:
        return await sync_to_async(self._search, thread_sensitive=True)(
            query_embedding, similarity_threshold, match_limit
        )

    def _search(self, query_embedding: str, similarity_threshold: float, match_limit: int) -> List[SimilarPage]:
        try:
            with connections[self.using].cursor() as cursor:
                cursor.execute(self.sql, [query_embedding, similarity_threshold, match_limit])
                rows = cursor.fetchall()
        except OperationalError as exc:
            message = str(exc).lower()
            if any(marker in message for marker in _TIMEOUT_MARKERS):
                raise SearchTimeoutError(str(exc)) from exc
            raise
        return [
            SimilarPage(
                id=row[0],
                url=row[1],
                title=row[2],
                meta_description=row[3],
                h1=row[4],
                embedding=_vector(row[5]),
                similarity=float(row[6]),
            )
            for row in rows
        ]


def build_similarity_search(backend: str) -> SimilaritySearch:
    if backend == "orm":
        return OrmSimilaritySearch()
    if backend == "sql_function":
        return SqlFunctionSimilaritySearch()
    raise ConfigurationError(f"Unknown similarity backend: {backend}")
