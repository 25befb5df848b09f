"""Shared model helpers: file bundles, config codec, asset naming."""

from .asset import (
    Asset,
    ensure_valid_sound_name,
    ensure_valid_sprite_name,
    get_unique_name,
    normalize_name,
)
from .file import File, Files, from_config, join, list_dirs, to_config

__all__ = [
    "Asset",
    "File",
    "Files",
    "ensure_valid_sound_name",
    "ensure_valid_sprite_name",
    "from_config",
    "get_unique_name",
    "join",
    "list_dirs",
    "normalize_name",
    "to_config",
]
