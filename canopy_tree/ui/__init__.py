"""Canopy Tree UI package.

Toolkit-free pieces (keyboard navigation, viewport contract, controller) live
beside the Tk reference widgets, which are only imported on demand so that
the pure modules stay usable without a display.
"""

from .navigation import KeyEvent, NavigationOutcome, navigate  # noqa: F401
from .viewport import RowPayload, RowSource, visible_window  # noqa: F401
from .controllers.tree_controller import TreeController  # noqa: F401

__all__: list[str] = [
    "KeyEvent",
    "NavigationOutcome",
    "navigate",
    "RowPayload",
    "RowSource",
    "visible_window",
    "TreeController",
]
