from __future__ import annotations

"""Tree editing services: drag-and-drop moves, lazy loading and undo/redo.

Services operate on an explicitly passed :class:`TreeContext` and report
routine failures through :class:`OperationResult` rather than exceptions.
"""

from .move_service import MoveService, OperationResult  # noqa: F401
from .lazy_load_service import FetchOutcome, LazyLoadService  # noqa: F401
from .undo_service import UndoService  # noqa: F401

__all__: list[str] = [
    "OperationResult",
    "MoveService",
    "LazyLoadService",
    "FetchOutcome",
    "UndoService",
]
