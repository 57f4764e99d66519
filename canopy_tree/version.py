"""Application version detection utilities.

Provides ``get_app_version()``, which prefers the installed distribution
metadata and falls back to a ``version.txt`` next to the package root (for
source checkouts), then to ``"vdev"``.
"""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Optional

_CACHED_VERSION: Optional[str] = None

_DISTRIBUTION = "canopy-tree"


def get_app_version() -> str:
    """Return the application version string (e.g., ``v1.2.3``)."""
    global _CACHED_VERSION
    if _CACHED_VERSION:
        return _CACHED_VERSION

    try:
        text = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        text = ""

    if not text:
        version_file = Path(__file__).resolve().parent.parent / "version.txt"
        if version_file.exists():
            text = version_file.read_text(encoding="ascii", errors="ignore").strip()

    if text:
        _CACHED_VERSION = text if text.startswith("v") else f"v{text}"
    else:
        _CACHED_VERSION = "vdev"
    return _CACHED_VERSION
