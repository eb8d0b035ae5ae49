"""Scoring, retries and batch behaviour of the match engine."""

from __future__ import annotations

import asyncio
import json

import pytest
from django.db import DatabaseError

from anchorlink.engine.errors import SearchTimeoutError
from anchorlink.engine.events import RecordingEventSink
from anchorlink.engine.matcher import MatchEngine, appears_in, matched_section, relaxed_query, score_options
from anchorlink.engine.types import AnchorCandidate, MatchedSection, MatchStatus

from .conftest import FakeEmbeddingProvider, FakeSearch, RecordingSleep, make_similar

BONUSES = {
    MatchedSection.TITLE: 0.15,
    MatchedSection.H1: 0.12,
    MatchedSection.META: 0.10,
    MatchedSection.SEMANTIC: 0.07,
}


def build_engine(config, search, provider=None, events=None, sleep=None):
    return MatchEngine(
        provider or FakeEmbeddingProvider(),
        search,
        config,
        events=events or RecordingEventSink(),
        sleep=sleep or RecordingSleep(),
    )


def test_relaxed_query_widens_threshold_and_limit():
    assert relaxed_query(0.52, 5) == (0.5, 10)
    threshold, limit = relaxed_query(0.9, 15)
    assert threshold == pytest.approx(0.7)
    assert limit == 20


def test_appears_in_accepts_literal_and_stemmed_matches():
    assert appears_in("soil", "Soil prep guide")
    assert appears_in("soil preparation", "Soil prep guide")
    assert not appears_in("soil preparation", "Soil guide")
    assert not appears_in("soil", None)


def test_shared_prefix_alone_is_not_a_section_match():
    constitution = make_similar(1, 0.8, title="Constitution de la Ve République")

    assert matched_section("construction", constitution)[0] is MatchedSection.SEMANTIC
    assert not appears_in("intérieur", "Boutique internet")
    assert not appears_in("production", "Produit du jardin")
    assert appears_in("préparation", "Prép. du sol")


def test_section_priority_and_fallback_content():
    pages = [
        make_similar(1, 0.8, title="Compost basics", h1="Compost at home"),
        make_similar(2, 0.8, title="Garden tips", h1="Compost at home"),
        make_similar(3, 0.8, title="Garden tips", meta_description="All about compost"),
        make_similar(4, 0.8, h1="Watering"),
        make_similar(5, 0.8),
    ]

    options = {option.id: option for option in score_options("compost", pages, 0.52, 10, BONUSES)}

    assert options[1].matched_section is MatchedSection.TITLE
    assert options[2].matched_section is MatchedSection.H1
    assert options[3].matched_section is MatchedSection.META
    assert options[4].matched_section is MatchedSection.SEMANTIC
    assert options[4].matched_content == "Watering"
    assert options[5].matched_content == "Content similarity detected"
    assert options[5].title == "Untitled Page"
    assert options[5].description == "No description available"


def test_scores_are_bonused_clamped_and_ranked():
    pages = [
        make_similar(1, 0.6, title="Compost guide"),
        make_similar(2, 0.7, title="Garden tips"),
        make_similar(3, 0.95, title="Compost handbook"),
        make_similar(4, 0.51, title="Compost again"),
    ]

    options = score_options("compost", pages, 0.52, 5, BONUSES)

    assert [option.id for option in options] == [3, 2, 1]
    assert [option.relevance_score for option in options] == [1.0, 0.77, 0.75]


def test_results_are_truncated_to_the_requested_maximum():
    pages = [make_similar(index, 0.6 + index / 100, title="Garden") for index in range(1, 8)]

    options = score_options("compost", pages, 0.52, 3, BONUSES)

    assert [option.id for option in options] == [7, 6, 5]


def test_search_uses_relaxed_parameters_and_filters_back(config):
    provider = FakeEmbeddingProvider({"compost": [0.1, 0.2, 0.3]})
    search = FakeSearch([make_similar(1, 0.7, title="Compost guide"), make_similar(2, 0.51, title="Compost")])
    engine = build_engine(config, search, provider)

    match = asyncio.run(engine.match_candidate(AnchorCandidate.from_text("compost")))

    assert match.status is MatchStatus.SUCCEEDED
    assert [option.id for option in match.options] == [1]
    query, threshold, limit = search.calls[0]
    assert json.loads(query) == [0.1, 0.2, 0.3]
    assert (threshold, limit) == (0.5, 10)


def test_persistent_timeouts_degrade_to_no_options(config):
    sleep = RecordingSleep()
    events = RecordingEventSink()
    search = FakeSearch(
        [make_similar(1, 0.9, title="Compost guide")],
        failures=[SearchTimeoutError("statement timeout")] * 3,
    )
    engine = build_engine(config, search, events=events, sleep=sleep)

    match = asyncio.run(engine.match_candidate(AnchorCandidate.from_text("compost")))

    assert match.status is MatchStatus.DEGRADED
    assert match.options == []
    assert len(search.calls) == 3
    assert sleep.delays == [1.0, 2.0]
    assert [fields["attempt"] for fields in events.named("match.search_retry")] == [1, 2]


def test_a_single_timeout_is_retried(config):
    search = FakeSearch([make_similar(1, 0.9, title="Compost guide")], failures=[SearchTimeoutError()])
    engine = build_engine(config, search)

    match = asyncio.run(engine.match_candidate(AnchorCandidate.from_text("compost")))

    assert match.status is MatchStatus.SUCCEEDED
    assert len(match.options) == 1


def test_embedding_failure_marks_candidate_failed(config):
    search = FakeSearch([make_similar(1, 0.9)])
    engine = build_engine(config, search, FakeEmbeddingProvider(failing={"compost"}))

    match = asyncio.run(engine.match_candidate(AnchorCandidate.from_text("compost")))

    assert match.status is MatchStatus.FAILED
    assert "compost" in match.error
    assert search.calls == []


def test_database_error_marks_candidate_failed_without_retry(config):
    search = FakeSearch(failures=[DatabaseError("function does not exist")])
    engine = build_engine(config, search)

    match = asyncio.run(engine.match_candidate(AnchorCandidate.from_text("compost")))

    assert match.status is MatchStatus.FAILED
    assert len(search.calls) == 1


def test_batch_is_sequential_paced_and_reports_progress(config):
    sleep = RecordingSleep()
    progress = []
    search = FakeSearch([make_similar(1, 0.7, title="Compost guide"), make_similar(2, 0.6, title="Garden")])
    engine = build_engine(config, search, sleep=sleep)
    candidates = [AnchorCandidate.from_text(text) for text in ("compost", "garden", "pruning")]

    result = asyncio.run(
        engine.match_candidates(candidates, on_progress=lambda done, total: progress.append((done, total)))
    )

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert sleep.delays == [0.1, 0.1]
    assert result.total_candidates == 3
    assert result.total_matches == 6
    assert result.average_score == pytest.approx(round((0.85 + 0.67 + 0.77 + 0.75 + 0.77 + 0.67) / 6, 2))


def test_match_text_validates_and_caps_suggestions(config):
    search = FakeSearch([make_similar(1, 0.9, title="Compost guide")])
    engine = build_engine(config, search)

    with pytest.raises(ValueError):
        asyncio.run(engine.match_text("   "))
    with pytest.raises(ValueError):
        asyncio.run(engine.match_text("a" * 201))

    match = asyncio.run(engine.match_text("compost", max_suggestions=50))

    assert match.options[0].matched_section is MatchedSection.TITLE
    assert search.calls[-1][2] == 20
