"""Packaged YAML settings and the :class:`ConfigManager` that loads them."""

from .manager import ConfigManager

__all__ = [
    "ConfigManager",
]
