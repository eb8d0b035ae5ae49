"""Reading crawl page exports."""

from __future__ import annotations

import asyncio

import pytest

from anchorlink.engine.errors import CrawlSourceError
from anchorlink.engine.normalizer import normalize_page
from anchorlink.engine.sources import CsvExportSource, parse_export

HEADER = "url;title;h1;meta_description;status_code;word_count;depth;inrank_decimal;internal_outlinks;nb_inlinks\n"


def test_export_values_stay_strings_and_blanks_become_none():
    lines = [
        HEADER,
        '"https://example.com/potager/sol.html";"Sol &amp; compost";"";"Guide; complet";"200";"850";"2";"0.42";"12";"7"\n',
    ]

    (page,) = parse_export(lines)

    assert page.url == "https://example.com/potager/sol.html"
    assert page.title == "Sol &amp; compost"
    assert normalize_page(page).title == "Sol & compost"
    assert page.h1 is None
    assert page.meta_description == "Guide; complet"
    assert page.word_count == "850"
    assert page.inrank_decimal == "0.42"


def test_rows_without_url_are_skipped():
    lines = [HEADER, ';"Orphan";;;"200";;;;;\n']

    assert parse_export(lines) == []


def test_export_without_url_column_is_rejected():
    with pytest.raises(CrawlSourceError):
        parse_export(["title;h1\n", "Sol;Sol\n"])


def test_csv_source_builds_a_crawl_snapshot(tmp_path):
    path = tmp_path / "crawl-2024-05.csv"
    path.write_text(HEADER + "https://example.com/verger/pommiers.html;Pommiers;;;200;;;;;\n", encoding="utf-8")
    source = CsvExportSource(path, project_name="Jardin")

    snapshot = asyncio.run(source.fetch_latest("42"))

    assert snapshot.crawl.project_id == "42"
    assert snapshot.crawl.crawl_id == "crawl-2024-05"
    assert snapshot.project_name == "Jardin"
    assert [page.title for page in snapshot.pages] == ["Pommiers"]


def test_missing_export_file_is_a_source_error(tmp_path):
    source = CsvExportSource(tmp_path / "missing.csv")

    with pytest.raises(CrawlSourceError):
        source.read_pages()


def test_entities_are_decoded_exactly_once():
    lines = [HEADER, "https://example.com/potager/code.html;Balise &amp;lt;p&amp;gt;;;;200;;;;;\n"]

    (page,) = parse_export(lines)

    assert page.title == "Balise &amp;lt;p&amp;gt;"
    assert normalize_page(page).title == "Balise &lt;p&gt;"
