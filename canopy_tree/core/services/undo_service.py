from __future__ import annotations

"""Undo/redo snapshot management for TreeContext.

This service is UI-agnostic and keeps pure in-memory history of the forests
held by a :class:`TreeContext`. Forests are immutable values, so a snapshot
is simply the ordered mapping of forest key to Forest at a point in time; no
serialization or deep copy is involved.

Design principles
-----------------
- No UI imports and no I/O.
- Redo stack is cleared on every new snapshot push.
- Memory usage controlled by a max_history policy (trim oldest).
- Selection is captured alongside the forests but callers are expected to
  re-validate it after a restore, since the selected node may not exist in
  the restored state.

"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from canopy_tree.core.models import Forest, TreeContext

__all__ = ["UndoService"]


@dataclass(frozen=True)
class _Snapshot:
    """Immutable capture of a TreeContext.

    Attributes
    ----------
    forests :
        Ordered ``(key, Forest)`` pairs.
    selected_id :
        Selection at capture time.
    """

    forests: Tuple[Tuple[str, Forest], ...]
    selected_id: Optional[str]


class UndoService:
    """Manage undo/redo stacks for :class:`TreeContext`.

    Callers push a snapshot BEFORE a mutation (baseline) and AFTER it (post).
    Undo restores the baseline and moves the post snapshot to the redo stack.

    Parameters
    ----------
    max_history : int, default=50
        Maximum number of snapshots kept per stack. Values below 2 are
        coerced to 2 so that one baseline/post pair always fits.

    Examples
    --------
    >>> svc = UndoService(max_history=10)
    >>> svc.push_snapshot(ctx)      # baseline
    >>> # ... mutate ctx ...
    >>> svc.push_snapshot(ctx)      # post
    >>> svc.undo(ctx)
    True
    """

    def __init__(self, max_history: int = 50) -> None:
        self._max_history: int = max(2, int(max_history))
        self._undo_stack: List[_Snapshot] = []
        self._redo_stack: List[_Snapshot] = []

    @property
    def max_history(self) -> int:
        return self._max_history

    # --------------------------------------------------------------------- API

    def push_snapshot(self, context: TreeContext) -> bool:
        """Capture the current context state onto the undo stack.

        Consecutive identical snapshots are collapsed into one, which keeps a
        post snapshot from being duplicated by the next edit's baseline.

        Returns
        -------
        bool
            True if a new snapshot was pushed, False if it was collapsed.
        """
        snap = self._create_snapshot(context)
        if self._undo_stack and self._same(self._undo_stack[-1], snap):
            return False
        self._undo_stack.append(snap)
        self._redo_stack.clear()
        self._trim(self._undo_stack)
        return True

    def discard_last(self) -> None:
        """Drop the most recent snapshot (a baseline whose edit failed)."""
        if self._undo_stack:
            self._undo_stack.pop()

    def undo(self, context: TreeContext) -> bool:
        """Restore the previous state into ``context``.

        Given ``undo_stack = [..., baseline, post]`` with the context at
        ``post``: pop ``post`` onto the redo stack and restore ``baseline``.
        """
        if len(self._undo_stack) < 2:
            return False
        post_snap = self._undo_stack.pop()
        self._restore_snapshot_into_context(context, self._undo_stack[-1])
        self._redo_stack.append(post_snap)
        self._trim(self._redo_stack)
        return True

    def redo(self, context: TreeContext) -> bool:
        """Re-apply the state most recently undone."""
        if not self._redo_stack:
            return False
        post_snap = self._redo_stack.pop()
        self._restore_snapshot_into_context(context, post_snap)
        self._undo_stack.append(post_snap)
        self._trim(self._undo_stack)
        return True

    def can_undo(self) -> bool:
        """Return True if an undo operation is currently possible."""
        return len(self._undo_stack) > 1

    def can_redo(self) -> bool:
        """Return True if a redo operation is currently possible."""
        return len(self._redo_stack) > 0

    def clear(self) -> None:
        """Clear both undo and redo histories."""
        self._undo_stack.clear()
        self._redo_stack.clear()

    # --------------------------------------------------------------- Internals

    def _trim(self, stack: List[_Snapshot]) -> None:
        overflow = len(stack) - self._max_history
        if overflow > 0:
            del stack[0:overflow]

    @staticmethod
    def _same(a: _Snapshot, b: _Snapshot) -> bool:
        if len(a.forests) != len(b.forests):
            return False
        return all(ka == kb and fa is fb for (ka, fa), (kb, fb) in zip(a.forests, b.forests))

    def _create_snapshot(self, context: TreeContext) -> _Snapshot:
        return _Snapshot(
            forests=tuple(context.forests.items()),
            selected_id=context.selected_id,
        )

    def _restore_snapshot_into_context(self, context: TreeContext, snap: _Snapshot) -> None:
        restored: Dict[str, Forest] = dict(snap.forests)
        context.forests = restored
        context.selected_id = snap.selected_id
        context.drag_source_id = None
