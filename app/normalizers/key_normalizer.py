"""
app/normalizers/key_normalizer.py

Canonical identifiers for metric and section labels.

All methods are pure and deterministic. They run both at ingestion time and
when re-reading rows written before an alias existed, so the same label must
always resolve to the same key.
"""

from __future__ import annotations

from app.normalizers.alias_config import DEFAULT_ALIAS_CONFIG, AliasConfig
from app.normalizers.labels import section_words, to_camel_key, to_snake_key


class KeyNormalizer:
    """
    Label-to-key conversions bound to one alias configuration.
    """

    def __init__(self, aliases: AliasConfig | None = None) -> None:
        self._aliases = aliases or DEFAULT_ALIAS_CONFIG
        targets = set(self._aliases.canonical_sections) | set(self._aliases.section_aliases.values())
        self._canonical_by_words = {section_words(key): key for key in targets}

    @property
    def aliases(self) -> AliasConfig:
        return self._aliases

    @staticmethod
    def to_snake_key(label: str | None) -> str:
        return to_snake_key(label)

    @staticmethod
    def to_camel_key(label: str | None) -> str:
        return to_camel_key(label)

    def to_section_key(self, label: str | None) -> str:
        """
        Map a section name to its section key.

        Known historical names resolve through the alias table, canonical keys
        are returned as-is, anything else becomes a ``-``-joined slug.
        """

        words = section_words(label)
        if not words:
            return ""
        aliased = self._aliases.section_aliases.get(words)
        if aliased is not None:
            return aliased
        canonical = self._canonical_by_words.get(words)
        if canonical is not None:
            return canonical
        return words.replace("_", "-")

    def resolve_metric_alias(self, key: str | None) -> str:
        snake = to_snake_key(key)
        return self._aliases.metric_aliases.get(snake, snake)

    def metric_key_for(self, metric_key: str | None, metric_name: str | None) -> str:
        """
        Canonical metric key from an explicit key, else from the display name.
        """

        if metric_key and metric_key.strip():
            return self.resolve_metric_alias(metric_key)
        return self.resolve_metric_alias(metric_name)

    def executive_key(self, metric_key: str | None) -> str:
        """
        Camel-cased canonical key used by the flat executive metrics map.
        """

        return to_camel_key(self.resolve_metric_alias(metric_key))
