"""Top-level package for Canopy Tree.

The GUI-agnostic engine lives in :mod:`canopy_tree.core`; front-ends (the
Tk reference view, tests, scripts) should depend on the public API exposed
there rather than on internal modules.
"""

from .core.models import DropTarget, DropZone, Forest, TreeContext, TreeNode  # re-export for convenience

__all__: list[str] = [
    "TreeNode",
    "Forest",
    "TreeContext",
    "DropTarget",
    "DropZone",
]
