"""Configuration loading and validation."""

from __future__ import annotations

import pytest

from anchorlink.engine.config import load_config
from anchorlink.engine.errors import ConfigurationError
from anchorlink.engine.types import MatchedSection


def test_defaults(config):
    assert config.batch_size("insert") == 500
    assert config.batch_size("update") == 200
    assert config.batch_size("delete") == 500
    assert config.similarity_threshold == 0.52
    assert config.section_bonus(MatchedSection.TITLE) == 0.15
    assert config.section_bonus(MatchedSection.SEMANTIC) == 0.07
    assert "3d" in config.site_patterns


def test_yaml_overrides_merge_with_defaults(tmp_path):
    path = tmp_path / "anchorlink.yaml"
    path.write_text(
        "sync:\n  insert_batch_size: 50\nmatching:\n  section_bonus:\n    Title: 0.2\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.batch_size("insert") == 50
    assert config.batch_size("update") == 200
    assert config.section_bonus(MatchedSection.TITLE) == 0.2
    assert config.section_bonus(MatchedSection.H1) == 0.12


def test_invalid_values_are_rejected(tmp_path):
    path = tmp_path / "anchorlink.yaml"
    path.write_text("sync:\n  update_batch_size: 0\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_file_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")
