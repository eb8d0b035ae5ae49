"""Shared fixtures and fakes for engine tests."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from anchorlink.engine.config import DEFAULTS, CorpusConfig, load_config, merge_into
from anchorlink.engine.errors import EmbeddingError
from anchorlink.engine.normalizer import normalize_page
from anchorlink.engine.types import ProcessedPage, RawPage, SimilarPage

DEFAULT_URL = "https://example.com/potager/preparation-du-sol.html"


@pytest.fixture()
def config():
    """Provide the default engine configuration."""

    return load_config(None)


def make_config(overrides: Dict[str, Any]) -> CorpusConfig:
    data = copy.deepcopy(DEFAULTS)
    merge_into(data, overrides)
    return CorpusConfig(data)


def make_raw_page(
    url: str = DEFAULT_URL,
    *,
    title: Optional[str] = "Préparer le sol du potager",
    h1: Optional[str] = "Préparation du sol",
    meta_description: Optional[str] = "Guide complet pour préparer le sol avant les semis.",
    status_code: Optional[str] = "200",
    word_count: Optional[str] = "850",
    depth: Optional[str] = "2",
    inrank_decimal: Optional[str] = "0.42",
    internal_outlinks: Optional[str] = "12",
    nb_inlinks: Optional[str] = "7",
) -> RawPage:
    return RawPage(
        url=url,
        title=title,
        h1=h1,
        meta_description=meta_description,
        status_code=status_code,
        word_count=word_count,
        depth=depth,
        inrank_decimal=inrank_decimal,
        internal_outlinks=internal_outlinks,
        nb_inlinks=nb_inlinks,
    )


def make_processed_page(url: str = DEFAULT_URL, **overrides: Any) -> ProcessedPage:
    return normalize_page(make_raw_page(url, **overrides))


def make_similar(
    id: int,
    similarity: float,
    *,
    title: Optional[str] = None,
    h1: Optional[str] = None,
    meta_description: Optional[str] = None,
    url: Optional[str] = None,
) -> SimilarPage:
    return SimilarPage(
        id=id,
        url=url or f"https://example.com/pages/{id}",
        title=title,
        h1=h1,
        meta_description=meta_description,
        similarity=similarity,
    )


class FakeEmbeddingProvider:
    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        *,
        default: Optional[List[float]] = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.failing = set(failing)
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.failing:
            raise EmbeddingError(f"cannot embed {text!r}")
        return list(self.vectors.get(text, self.default))


class FakeSearch:
    """Serve canned pages, raising the queued errors first."""

    def __init__(self, pages: Sequence[SimilarPage] = (), failures: Iterable[BaseException] = ()) -> None:
        self.pages = list(pages)
        self.failures = list(failures)
        self.calls: List[tuple] = []

    async def search(self, query_embedding: str, similarity_threshold: float, match_limit: int) -> List[SimilarPage]:
        self.calls.append((query_embedding, similarity_threshold, match_limit))
        if self.failures:
            raise self.failures.pop(0)
        ranked = sorted(self.pages, key=lambda page: page.similarity, reverse=True)
        return [page for page in ranked if page.similarity >= similarity_threshold][:match_limit]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
