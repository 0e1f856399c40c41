"""
app/normalizers/alias_config.py

Injectable alias tables for section and metric key normalization.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from app.normalizers.labels import section_words, to_snake_key

logger = logging.getLogger(__name__)

CANONICAL_SECTION_KEYS: tuple[str, ...] = (
    "executive",
    "financial",
    "operational",
    "programs",
    "stakeholders",
    "scenarios",
    "global_signals",
)

DEFAULT_SECTION_ALIASES: dict[str, str] = {
    "Executive Summary": "executive",
    "Financial Analytics": "financial",
    "Operational Analytics": "operational",
    "Programs Analytics": "programs",
    "Stakeholder Analytics": "stakeholders",
    "Scenario Analysis": "scenarios",
    "Global Signals": "global_signals",
}

# Append-only: historical metric names mapped to their current canonical key.
DEFAULT_METRIC_ALIASES: dict[str, str] = {
    "lives_impacted": "people_served",
    "total_revenue": "revenue",
    "total_expenses": "expenses",
    "cash": "cash_position",
}


class AliasConfigError(ValueError):
    """
    Raised when an alias table would alias two canonical keys together.
    """


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class AliasConfig:
    """
    Normalized alias tables.

    Keys of ``section_aliases`` are word-normalized section labels; keys and
    values of ``metric_aliases`` are snake keys. Build instances through
    ``from_mapping`` so the tables are validated.
    """

    section_aliases: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    canonical_sections: frozenset[str] = frozenset()
    metric_aliases: Mapping[str, str] = field(default_factory=lambda: _frozen({}))

    @classmethod
    def from_mapping(
        cls,
        *,
        section_aliases: Mapping[str, str] | None = None,
        canonical_sections: Iterable[str] = (),
        metric_aliases: Mapping[str, str] | None = None,
    ) -> "AliasConfig":
        canonical = frozenset(key.strip() for key in canonical_sections if key and key.strip())
        canonical_words = {section_words(key): key for key in canonical}

        sections: dict[str, str] = {}
        for label, target in (section_aliases or {}).items():
            source_words = section_words(label)
            target_key = target.strip()
            if not source_words or not target_key:
                raise AliasConfigError(f"Section alias {label!r} -> {target!r} is blank.")
            if source_words == section_words(target_key):
                continue
            existing_canonical = canonical_words.get(source_words)
            if existing_canonical is not None and existing_canonical != target_key:
                raise AliasConfigError(
                    f"Section alias {label!r} re-aliases canonical section {existing_canonical!r}."
                )
            previous = sections.get(source_words)
            if previous is not None and previous != target_key:
                raise AliasConfigError(
                    f"Section alias {label!r} maps to both {previous!r} and {target_key!r}."
                )
            sections[source_words] = target_key

        section_targets = {section_words(target) for target in sections.values()}
        chained = sorted(section_targets & set(sections))
        if chained:
            raise AliasConfigError(f"Section alias targets are also alias sources: {chained}.")

        metrics: dict[str, str] = {}
        for source, target in (metric_aliases or {}).items():
            source_key = to_snake_key(source)
            target_key = to_snake_key(target)
            if not source_key or not target_key:
                raise AliasConfigError(f"Metric alias {source!r} -> {target!r} is blank.")
            if source_key == target_key:
                continue
            previous = metrics.get(source_key)
            if previous is not None and previous != target_key:
                raise AliasConfigError(
                    f"Metric alias {source!r} maps to both {previous!r} and {target_key!r}."
                )
            metrics[source_key] = target_key

        chained = sorted(set(metrics.values()) & set(metrics))
        if chained:
            raise AliasConfigError(f"Metric alias targets are also alias sources: {chained}.")

        return cls(
            section_aliases=_frozen(sections),
            canonical_sections=canonical,
            metric_aliases=_frozen(metrics),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sections": dict(self.section_aliases),
            "canonical_sections": sorted(self.canonical_sections),
            "metrics": dict(self.metric_aliases),
        }


DEFAULT_ALIAS_CONFIG = AliasConfig.from_mapping(
    section_aliases=DEFAULT_SECTION_ALIASES,
    canonical_sections=CANONICAL_SECTION_KEYS,
    metric_aliases=DEFAULT_METRIC_ALIASES,
)


def load_alias_config(path: str | Path) -> AliasConfig:
    """
    Load alias tables from a JSON document.

    Expected keys: ``sections`` (label -> section key), ``canonical_sections``
    (list) and ``metrics`` (old key -> canonical key). Missing keys fall back
    to the built-in tables.
    """

    config_path = Path(path)
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise AliasConfigError(f"Could not read alias config {config_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise AliasConfigError(f"Alias config {config_path} must be a JSON object.")

    sections = payload.get("sections", DEFAULT_SECTION_ALIASES)
    canonical = payload.get("canonical_sections", CANONICAL_SECTION_KEYS)
    metrics = payload.get("metrics", DEFAULT_METRIC_ALIASES)
    if not isinstance(sections, dict) or not isinstance(metrics, dict) or not isinstance(canonical, (list, tuple)):
        raise AliasConfigError(f"Alias config {config_path} has malformed tables.")

    config = AliasConfig.from_mapping(
        section_aliases={str(key): str(value) for key, value in sections.items()},
        canonical_sections=[str(item) for item in canonical],
        metric_aliases={str(key): str(value) for key, value in metrics.items()},
    )
    logger.info(
        "Alias config loaded path=%s sections=%s metrics=%s",
        config_path,
        len(config.section_aliases),
        len(config.metric_aliases),
    )
    return config
