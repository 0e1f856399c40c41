"""
app/normalizers/labels.py

Alias-free label transformations shared by the key normalizer and alias
configuration loading. Every function is total: any string maps to a
(possibly empty) key.
"""

from __future__ import annotations

import re

_DISALLOWED_CHARS = re.compile(r"[^0-9A-Za-z\s_]+")
_CASE_TRANSITION = re.compile(r"([a-z0-9])([A-Z])")
_WORD_SEPARATORS = re.compile(r"[\s_]+")


def label_words(label: str | None) -> list[str]:
    """
    Split a free-form label into lower-case words.

    ``"Lives Impacted"``, ``"livesImpacted"`` and ``"lives_impacted"`` all
    yield ``["lives", "impacted"]``.
    """

    if not label:
        return []
    cleaned = _DISALLOWED_CHARS.sub("", label)
    cleaned = _CASE_TRANSITION.sub(r"\1_\2", cleaned)
    return [word.lower() for word in _WORD_SEPARATORS.split(cleaned) if word]


def to_snake_key(label: str | None) -> str:
    return "_".join(label_words(label))


def to_camel_key(label: str | None) -> str:
    words = label_words(label)
    if not words:
        return ""
    return words[0] + "".join(word[:1].upper() + word[1:] for word in words[1:])


def section_words(label: str | None) -> str:
    """
    Snake form of a section label where hyphens also separate words.
    """

    if not label:
        return ""
    return to_snake_key(label.replace("-", " "))


def normalize_header(header: str | None) -> str:
    """
    Normalize a column name for flexible matching.
    """

    if not header:
        return ""
    return "".join(ch for ch in header.strip().lower() if ch.isalnum())
