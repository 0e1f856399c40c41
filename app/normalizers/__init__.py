"""
app/normalizers package marker.
"""

from app.normalizers.alias_config import (
    DEFAULT_ALIAS_CONFIG,
    AliasConfig,
    AliasConfigError,
    load_alias_config,
)
from app.normalizers.key_normalizer import KeyNormalizer

__all__ = [
    "DEFAULT_ALIAS_CONFIG",
    "AliasConfig",
    "AliasConfigError",
    "KeyNormalizer",
    "load_alias_config",
]
