"""Similarity backend selection and the SQL function adapter."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from django.db import OperationalError

from anchorlink.engine.errors import ConfigurationError, SearchTimeoutError
from anchorlink.engine.search import (
    OrmSimilaritySearch,
    SqlFunctionSimilaritySearch,
    build_similarity_search,
)


def cursor_returning(rows=None, error=None):
    cursor = MagicMock()
    if error is not None:
        cursor.execute.side_effect = error
    cursor.fetchall.return_value = rows or []
    connection = MagicMock()
    connection.cursor.return_value.__enter__.return_value = cursor
    return {"default": connection}, cursor


def test_backend_selection():
    assert isinstance(build_similarity_search("orm"), OrmSimilaritySearch)
    assert isinstance(build_similarity_search("sql_function"), SqlFunctionSimilaritySearch)
    with pytest.raises(ConfigurationError):
        build_similarity_search("faiss")


def test_sql_function_rows_are_mapped():
    connections, cursor = cursor_returning(
        rows=[(7, "https://example.com/a", "Soil prep guide", None, "Soil", "[1.0, 0.0]", 0.83)]
    )

    with patch("anchorlink.engine.search.connections", connections):
        (page,) = asyncio.run(SqlFunctionSimilaritySearch().search("[1.0, 0.0]", 0.5, 10))

    assert cursor.execute.call_args.args[1] == ["[1.0, 0.0]", 0.5, 10]
    assert page.id == 7
    assert page.embedding == [1.0, 0.0]
    assert page.similarity == 0.83


def test_statement_timeout_becomes_a_search_timeout():
    connections, _ = cursor_returning(error=OperationalError("canceling statement due to statement timeout"))

    with patch("anchorlink.engine.search.connections", connections):
        with pytest.raises(SearchTimeoutError):
            asyncio.run(SqlFunctionSimilaritySearch().search("[1.0]", 0.5, 10))


def test_other_operational_errors_propagate():
    connections, _ = cursor_returning(error=OperationalError("function find_similar_pages does not exist"))

    with patch("anchorlink.engine.search.connections", connections):
        with pytest.raises(OperationalError):
            asyncio.run(SqlFunctionSimilaritySearch().search("[1.0]", 0.5, 10))
