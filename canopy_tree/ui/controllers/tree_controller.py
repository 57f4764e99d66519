from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from canopy_tree.core import forest_ops
from canopy_tree.core.flatten import collect_drag_preview, flatten_forests, row_index_of
from canopy_tree.core.forest_ops import TreeStats
from canopy_tree.core.models import DropTarget, FlatRow, Forest, TreeContext
from canopy_tree.core.services.lazy_load_service import LazyLoadService
from canopy_tree.core.services.move_service import MoveService, OperationResult
from canopy_tree.core.services.undo_service import UndoService
from canopy_tree.ui.navigation import KeyEventLike, NavigationOutcome, navigate
from canopy_tree.ui.viewport import RowSource

__all__ = ["TreeController"]

logger = logging.getLogger(__name__)


class TreeController:
    """Controller mediating between a tree viewport and the tree services.

    The controller is the single writer of its :class:`TreeContext`. Every
    event entry point (expand click, key press, drag start/end, toolbar
    action) runs to completion on the UI thread, commits new Forest values,
    re-flattens once and notifies listeners. It contains no UI toolkit code.

    Parameters
    ----------
    context : TreeContext
        The state the UI is working with.
    move_service : MoveService
        Performs drag-and-drop moves.
    lazy_loader : LazyLoadService
        Fetches unknown children; the controller re-flattens whenever a
        node starts or finishes loading.
    undo_service : UndoService
        Snapshot history for moves, adds and deletes.
    seed_factory : Callable[[], TreeContext], optional
        Used by :meth:`reset` to rebuild the initial state.
    preview_limit : int
        Maximum rows returned by :meth:`drag_preview`.

    Notes
    -----
    - Routine failures are reported through OperationResult or booleans,
      never raised.
    - Expand/collapse and selection changes are not recorded in undo history.
    """

    def __init__(
        self,
        context: TreeContext,
        move_service: MoveService,
        lazy_loader: LazyLoadService,
        undo_service: UndoService,
        seed_factory: Optional[Callable[[], TreeContext]] = None,
        preview_limit: int = 20,
    ) -> None:
        self.context: TreeContext = context
        self.move_service: MoveService = move_service
        self.lazy_loader: LazyLoadService = lazy_loader
        self.undo_service: UndoService = undo_service
        self._seed_factory = seed_factory
        self.preview_limit: int = max(1, int(preview_limit))

        self._rows: Tuple[FlatRow, ...] = ()
        self._rows_listeners: List[Callable[[Sequence[FlatRow]], None]] = []
        self._scroll_listeners: List[Callable[[int], None]] = []

        self.lazy_loader.add_listener(self._on_node_loaded)
        self._refresh_rows()
        self.undo_service.push_snapshot(self.context)

    @classmethod
    def create(
        cls,
        context: TreeContext,
        fetch_children: Callable[[str], Any],
        *,
        run_in_thread: Optional[Callable[..., None]] = None,
        seed_factory: Optional[Callable[[], TreeContext]] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> "TreeController":
        """Wire services from settings (the ``tree_settings`` mapping)."""
        settings = settings or {}
        max_history = int((settings.get("undo") or {}).get("max_history", 50))
        preview_limit = int((settings.get("drag") or {}).get("preview_limit", 20))

        return cls(
            context,
            MoveService(),
            LazyLoadService(fetch_children, run_in_thread=run_in_thread),
            UndoService(max_history=max_history),
            seed_factory=seed_factory,
            preview_limit=preview_limit,
        )

    # ---------------------------------------------------------------------------------
    # Listeners and read access
    # ---------------------------------------------------------------------------------

    def on_rows_changed(self, callback: Callable[[Sequence[FlatRow]], None]) -> None:
        self._rows_listeners.append(callback)

    def on_scroll_request(self, callback: Callable[[int], None]) -> None:
        """Register a callback receiving row indices to scroll into view."""
        self._scroll_listeners.append(callback)

    @property
    def rows(self) -> Tuple[FlatRow, ...]:
        return self._rows

    @property
    def selected_id(self) -> Optional[str]:
        return self.context.selected_id

    @property
    def drag_active(self) -> bool:
        return self.context.drag_source_id is not None

    def row_source(self) -> RowSource:
        return RowSource(
            lambda: self._rows,
            lambda: self.context.selected_id,
            lambda: self.context.drag_source_id,
        )

    def selected_index(self) -> int:
        return row_index_of(self._rows, self.context.selected_id)

    def get_stats(self) -> TreeStats:
        return forest_ops.compute_stats(list(self.context.forests.values()))

    # ---------------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------------

    def _refresh_rows(self) -> None:
        self._rows = flatten_forests(self.context.forests.values())

    def _heal_references(self) -> None:
        """Drop selection and drag-source ids whose node no longer exists."""
        if self.context.selected_id is not None and not self.context.contains(self.context.selected_id):
            logger.debug("Selection cleared (node gone): %s", self.context.selected_id)
            self.context.selected_id = None
        if self.context.drag_source_id is not None and not self.context.contains(self.context.drag_source_id):
            self.context.drag_source_id = None

    def refresh(self) -> None:
        """Re-flatten after a commit and notify row listeners."""
        self._refresh_rows()
        self._notify_rows()

    def _notify_rows(self) -> None:
        """Notify row listeners without re-flattening.

        Enough when only the selection or drag source changed: rows do not
        carry either, viewports read them through :class:`RowSource`.
        """
        self._heal_references()
        for callback in list(self._rows_listeners):
            try:
                callback(self._rows)
            except Exception:
                logger.error("Rows listener failed", exc_info=True)

    def _on_node_loaded(self, node_id: str) -> None:
        logger.debug("Lazy load state changed: %s", node_id)
        self.refresh()

    def _request_scroll(self, index: Optional[int]) -> None:
        if index is None or index < 0:
            return
        for callback in list(self._scroll_listeners):
            try:
                callback(index)
            except Exception:
                logger.error("Scroll listener failed", exc_info=True)

    def _recorded_edit(self, mutate: Callable[[], OperationResult]) -> OperationResult:
        """Execute a mutating operation with pre/post undo snapshots.

        A baseline pushed for an edit that then fails is discarded again, so
        failed edits leave no history entry.
        """
        pushed_baseline = self.undo_service.push_snapshot(self.context)
        result = mutate()
        if result.success:
            self.undo_service.push_snapshot(self.context)
            self.refresh()
        elif pushed_baseline:
            self.undo_service.discard_last()
        return result

    def _commit(self, *forests: Forest) -> None:
        self.context.replace_forests(*forests)
        self.refresh()

    # ---------------------------------------------------------------------------------
    # Selection and expand state
    # ---------------------------------------------------------------------------------

    def select(self, node_id: Optional[str]) -> bool:
        """Select ``node_id`` (None clears). Returns True if the selection changed."""
        if node_id is not None and not self.context.contains(node_id):
            return False
        if node_id == self.context.selected_id:
            return False
        self.context.selected_id = node_id
        self._notify_rows()
        return True

    def toggle(self, node_id: str) -> bool:
        """Expand-click handler: toggle known children, lazily load unknown ones."""
        node = self.context.find_node(node_id)
        if node is None or node.is_leaf:
            return False
        if node.is_loading:
            logger.debug("Toggle ignored (loading): %s", node_id)
            return False
        if node.children is None:
            return self.lazy_loader.request_children(self.context, node_id).success
        forest = self.context.forest_of(node_id)
        updated = forest_ops.toggle_expanded(forest, node_id)
        if updated is forest:
            return False
        self._commit(updated)
        return True

    def expand(self, node_id: str) -> bool:
        node = self.context.find_node(node_id)
        if node is None or node.is_leaf or node.is_loading:
            return False
        if node.children is None:
            return self.lazy_loader.request_children(self.context, node_id).success
        forest = self.context.forest_of(node_id)
        updated = forest_ops.set_expanded(forest, node_id, True)
        if updated is forest:
            return False
        self._commit(updated)
        return True

    def collapse(self, node_id: str) -> bool:
        forest = self.context.forest_of(node_id)
        if forest is None:
            return False
        updated = forest_ops.set_expanded(forest, node_id, False)
        if updated is forest:
            return False
        self._commit(updated)
        return True

    def expand_all(self) -> None:
        """Expand every node with known children; no fetches are triggered."""
        self._commit(*(forest_ops.expand_all(f) for f in self.context.forests.values()))

    def collapse_all(self) -> None:
        self._commit(*(forest_ops.collapse_all(f) for f in self.context.forests.values()))

    # ---------------------------------------------------------------------------------
    # Keyboard
    # ---------------------------------------------------------------------------------

    def handle_key(self, event: KeyEventLike) -> NavigationOutcome:
        """Apply a key press; emits at most one scroll request."""
        outcome = navigate(event, self._rows, self.context.selected_id, self.drag_active)
        if not outcome.changed:
            return outcome
        applied = True
        if outcome.select_id is not None:
            self.context.selected_id = outcome.select_id
            self._notify_rows()
        elif outcome.toggle_id is not None:
            applied = self.toggle(outcome.toggle_id)
        elif outcome.expand_id is not None:
            applied = self.expand(outcome.expand_id)
        elif outcome.collapse_id is not None:
            applied = self.collapse(outcome.collapse_id)
        if applied:
            self._request_scroll(outcome.scroll_to)
        return outcome

    # ---------------------------------------------------------------------------------
    # Drag and drop
    # ---------------------------------------------------------------------------------

    def handle_drag_start(self, node_id: str) -> bool:
        if row_index_of(self._rows, node_id) < 0:
            return False
        self.context.drag_source_id = node_id
        logger.debug("Drag start: %s", node_id)
        self._notify_rows()
        return True

    def drag_preview(self) -> Tuple[Tuple[FlatRow, ...], bool]:
        """Rows shown in the drag overlay and whether they were truncated."""
        if self.context.drag_source_id is None:
            return (), False
        return collect_drag_preview(self._rows, self.context.drag_source_id, self.preview_limit)

    def handle_drag_end(self, active_id: str, drop: Optional[DropTarget]) -> OperationResult:
        """Finish a drag gesture; ``drop`` None means the gesture was cancelled."""
        self.context.drag_source_id = None
        if drop is None:
            self._notify_rows()
            return OperationResult(False, "Drag cancelled.", {"node_id": active_id})
        rows = self._rows
        result = self._recorded_edit(lambda: self.move_service.move_node(self.context, active_id, drop, rows))
        if not result.success:
            self._notify_rows()
        return result

    def handle_drop_token(self, active_id: str, token: Optional[str]) -> OperationResult:
        """Variant of :meth:`handle_drag_end` taking a ``drop:<zone>:<id>`` token."""
        return self.handle_drag_end(active_id, DropTarget.parse(token) if token else None)

    # ---------------------------------------------------------------------------------
    # Add / delete
    # ---------------------------------------------------------------------------------

    def handle_add(
        self,
        parent_id: Optional[str],
        fields: Mapping[str, Any],
        *,
        is_leaf: bool = False,
        forest_key: Optional[str] = None,
    ) -> OperationResult:
        """Create a node as the last child of ``parent_id``.

        With ``parent_id`` None the node becomes the last root of
        ``forest_key``.
        """
        if parent_id is not None:
            forest = self.context.forest_of(parent_id)
            parent = forest.get(parent_id) if forest is not None else None
            if parent is None:
                return OperationResult(False, "Parent not found.", {"parent_id": parent_id})
            if parent.is_loading:
                return OperationResult(False, "Parent is still loading.", {"parent_id": parent_id})
        else:
            forest = self.context.forests.get(forest_key) if forest_key else None
            if forest is None:
                return OperationResult(False, "Unknown forest.", {"forest": forest_key})

        def _mutate() -> OperationResult:
            updated, new_id = forest_ops.add_node(forest, parent_id, fields, is_leaf=is_leaf)
            if new_id is None:
                logger.info("Edit noop: add_node parent=%s", parent_id)
                return OperationResult(False, "Cannot add a node here.", {"parent_id": parent_id})
            self.context.replace_forests(updated)
            logger.info("Edit OK: add_node id=%s parent=%s", new_id, parent_id)
            return OperationResult(True, "Node added.", {"node_id": new_id, "parent_id": parent_id})

        logger.info("Edit: add_node parent=%s forest=%s", parent_id, forest.key)
        return self._recorded_edit(_mutate)

    def handle_delete(self, node_id: str) -> OperationResult:
        """Remove ``node_id`` and its subtree; selection self-heals."""
        logger.info("Edit: delete_node node=%s", node_id)
        forest = self.context.forest_of(node_id)
        if forest is None:
            logger.info("Edit noop: delete_node node_not_found node=%s", node_id)
            return OperationResult(False, "Node not found.", {"node_id": node_id})

        def _mutate() -> OperationResult:
            updated, subtree = forest_ops.remove(forest, node_id)
            removed = len(forest_ops.subtree_ids(subtree)) if subtree is not None else 0
            self.context.replace_forests(updated)
            logger.info("Edit OK: delete_node node=%s removed=%d", node_id, removed)
            return OperationResult(True, "Node deleted.", {"node_id": node_id, "removed": removed})

        return self._recorded_edit(_mutate)

    # ---------------------------------------------------------------------------------
    # History and reset
    # ---------------------------------------------------------------------------------

    def can_undo(self) -> bool:
        return self.undo_service.can_undo()

    def can_redo(self) -> bool:
        return self.undo_service.can_redo()

    def undo(self) -> bool:
        if not self.undo_service.undo(self.context):
            return False
        self.lazy_loader.reconcile(self.context)
        self.refresh()
        return True

    def redo(self) -> bool:
        if not self.undo_service.redo(self.context):
            return False
        self.lazy_loader.reconcile(self.context)
        self.refresh()
        return True

    def reset(self) -> bool:
        """Rebuild the initial state from the seed factory; clears history."""
        if self._seed_factory is None:
            return False
        fresh = self._seed_factory()
        self.lazy_loader.clear()
        self.context.forests = dict(fresh.forests)
        self.context.selected_id = fresh.selected_id
        self.context.drag_source_id = None
        self.undo_service.clear()
        self.undo_service.push_snapshot(self.context)
        logger.info("Tree reset to seed state")
        self.refresh()
        return True
