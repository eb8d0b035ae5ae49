"""Shared text utilities for the anchorlink engine."""

from __future__ import annotations

import math
import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup  # type: ignore

_WORD_RE = re.compile(r"[\w'-]+")
_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


def decode_entities(value: str) -> str:
    """Return ``value`` with HTML entities such as ``&amp;`` decoded."""

    if "&" not in value:
        return value
    try:
        soup = BeautifulSoup(value, 'lxml')
    except Exception:
        soup = BeautifulSoup(value, 'html.parser')
    return soup.get_text()


def clean_text(value: Optional[str]) -> Optional[str]:
    """Decode entities and trim; empty strings become ``None``."""

    if value is None:
        return None
    cleaned = decode_entities(value).strip()
    return cleaned or None


def fold_apostrophes(text: str) -> str:
    return text.translate(_APOSTROPHES)


def words(text: str) -> List[str]:
    """Lowercase words; any character other than a word character, ``'`` or ``-`` separates them."""

    return _WORD_RE.findall(fold_apostrophes(text).lower())


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Cosine similarity between two dense vectors of equal length."""

    if not vector_a or not vector_b or len(vector_a) != len(vector_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vector_a, vector_b))
    norm_a = math.sqrt(sum(value * value for value in vector_a))
    norm_b = math.sqrt(sum(value * value for value in vector_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)
