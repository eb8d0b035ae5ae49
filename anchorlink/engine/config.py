"""Configuration helpers for the anchorlink engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from .errors import ConfigurationError
from .exclusions import EXCLUDED_URL_PHRASES, FORUM_INDICATORS, SITE_SPECIFIC_EXCLUDED_PATTERNS
from .types import MatchedSection


@dataclass(frozen=True)
class CorpusConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        return self.raw.get(section, {}).get(key, default)

    def batch_size(self, operation: str) -> int:
        return int(self.get("sync", f"{operation}_batch_size"))

    def section_bonus(self, section: MatchedSection) -> float:
        bonuses = self.get("matching", "section_bonus", {})
        return float(bonuses.get(section.value, 0.0))

    @property
    def similarity_threshold(self) -> float:
        return float(self.get("matching", "similarity_threshold"))

    @property
    def max_options(self) -> int:
        return int(self.get("matching", "max_options"))

    @property
    def candidate_delay(self) -> float:
        return float(self.get("matching", "candidate_delay"))

    @property
    def url_phrases(self) -> Tuple[str, ...]:
        return tuple(item.lower() for item in self.get("exclusions", "url_phrases", ()))

    @property
    def site_patterns(self) -> Tuple[str, ...]:
        return tuple(item.lower() for item in self.get("exclusions", "site_patterns", ()))

    @property
    def forum_indicators(self) -> Tuple[str, ...]:
        return tuple(item.lower() for item in self.get("exclusions", "forum_indicators", ()))


DEFAULTS: Dict[str, Any] = {
    "sync": {
        "insert_batch_size": 500,
        "update_batch_size": 200,
        "delete_batch_size": 500,
    },
    "snapshot": {
        "full_batch_size": 1000,
        "url_batch_size": 2000,
    },
    "retry": {
        "max_attempts": 3,
        "base_delay": 1.0,
        "max_delay": 5.0,
        "timeout": 30.0,
    },
    "matching": {
        "similarity_threshold": 0.52,
        "max_options": 5,
        "candidate_delay": 0.1,
        "section_bonus": {
            "Title": 0.15,
            "H1": 0.12,
            "Meta": 0.10,
            "Semantic": 0.07,
        },
    },
    "embedding": {
        "model": "text-embedding-3-small",
    },
    "backfill": {
        "batch_size": 200,
        "delay": 0.2,
    },
    "exclusions": {
        "url_phrases": list(EXCLUDED_URL_PHRASES),
        "site_patterns": list(SITE_SPECIFIC_EXCLUDED_PATTERNS),
        "forum_indicators": list(FORUM_INDICATORS),
    },
}


def load_config(path: str | Path | None = None) -> CorpusConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None:
        if not Path(path).exists():
            raise ConfigurationError(f"Configuration file {path} does not exist")
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        if not isinstance(user, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        merge_into(data, user)

    _validate(data)
    return CorpusConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value


def _validate(data: Dict[str, Any]) -> None:
    for key, value in data["sync"].items():
        if not isinstance(value, int) or value < 1:
            raise ConfigurationError(f"sync.{key} must be a positive integer")
    for key, value in data["snapshot"].items():
        if not isinstance(value, int) or value < 1:
            raise ConfigurationError(f"snapshot.{key} must be a positive integer")
    if data["retry"]["max_attempts"] < 1:
        raise ConfigurationError("retry.max_attempts must be at least 1")
    threshold = data["matching"]["similarity_threshold"]
    if not 0 <= threshold <= 1:
        raise ConfigurationError("matching.similarity_threshold must be within [0, 1]")
