from __future__ import annotations

"""Service layer for drag-and-drop moves inside a :class:`TreeContext`.

The service is UI-agnostic: it receives the id of the dragged node and a
:class:`DropTarget` produced by whatever gesture source the view uses, and
commits the resulting Forest(s) into the context.

Scope and guarantees:
- Operates purely in-memory on TreeContext, no I/O nor UI imports.
- Invalid requests (stale ids, cycles, cross-kind drops, leaf targets)
  return OperationResult(success=False, ...) and leave the context untouched;
  nothing is raised.
- BEFORE/AFTER positions are computed against the sibling list *after* the
  dragged node has been detached, so dropping next to a former sibling
  lands exactly where the indicator was shown.

Examples
--------
    service = MoveService()
    result = service.move_node(ctx, "b", DropTarget(DropZone.ONTO, "c"))
    if not result.success:
        print(result.message)

"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional, Sequence

from canopy_tree.core import forest_ops
from canopy_tree.core.flatten import flatten_forests
from canopy_tree.core.models import DropTarget, DropZone, FlatRow, TreeContext


__all__ = ["OperationResult", "MoveService"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """Result of a tree editing operation.

    Attributes
    ----------
    success
        Whether the operation changed the tree.
    message
        Human-readable summary suitable for logs or a status line.
    details
        Optional structured details for diagnostics or caller logic.
    """
    success: bool
    message: str
    details: Optional[Dict[str, Any]] = None


class MoveService:
    """Reparent or reorder a node by dropping it relative to another node.

    Both nodes must be visible, that is present in the flattened rows the
    user was looking at when the gesture ended. Drops are only accepted
    between nodes of the same kind; two forests of the same kind may
    exchange subtrees, in which case both forests are replaced together.
    """

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def move_node(
        self,
        context: TreeContext,
        dragged_id: str,
        drop: Optional[DropTarget],
        rows: Optional[Sequence[FlatRow]] = None,
    ) -> OperationResult:
        """Move ``dragged_id`` relative to ``drop.target_id``.

        Parameters
        ----------
        context : TreeContext
            The state to edit; forests are replaced on success.
        dragged_id : str
            Id of the node being dragged.
        drop : DropTarget or None
            Where the node was released. None means the gesture was cancelled.
        rows : sequence of FlatRow, optional
            The flattened rows shown to the user; recomputed when omitted.

        Returns
        -------
        OperationResult
            ``success`` is False for every structural no-op.
        """
        if drop is None:
            return OperationResult(False, "Drag cancelled.", {"node_id": dragged_id})
        logger.info("Edit: move_node node=%s zone=%s target=%s", dragged_id, drop.zone.value, drop.target_id)

        if rows is None:
            rows = flatten_forests(context.forests.values())
        dragged_row = _row_for(rows, dragged_id)
        target_row = _row_for(rows, drop.target_id)
        if dragged_row is None or target_row is None:
            return self._noop("node_not_visible", dragged_id, drop, "Node or drop target is no longer visible.")

        dragged, target = dragged_row.node, target_row.node
        if dragged.kind != target.kind:
            return self._noop("kind_mismatch", dragged_id, drop, "Cannot drop onto a node of another kind.")

        source_forest = context.forests.get(dragged_row.forest_key)
        target_forest = context.forests.get(target_row.forest_key)
        if source_forest is None or target_forest is None or source_forest.kind != target_forest.kind:
            return self._noop("kind_mismatch", dragged_id, drop, "Cannot drop into a forest of another kind.")

        same_forest = source_forest.key == target_forest.key
        if same_forest and forest_ops.is_descendant_or_self(source_forest, dragged_id, drop.target_id):
            return self._noop("cycle", dragged_id, drop, "Cannot drop a node into itself or its descendants.")

        if drop.zone is DropZone.ONTO:
            if target.is_leaf:
                return self._noop("leaf_target", dragged_id, drop, "Cannot drop onto a leaf.")
            if target.is_loading:
                return self._noop("target_loading", dragged_id, drop, "Target is still loading its children.")

        # Rows may be stale: the node can be gone from the forest they came from.
        original = source_forest.structure.get(dragged_id)
        if original is None:
            return self._noop("node_not_found", dragged_id, drop, "Node no longer exists.")
        removed_forest, subtree = forest_ops.remove(source_forest, dragged_id)
        if subtree is None:
            return self._noop("node_not_found", dragged_id, drop, "Node no longer exists.")

        destination = removed_forest if same_forest else target_forest
        if drop.zone is DropZone.ONTO:
            parent_id: Optional[str] = drop.target_id
            index: Optional[int] = None
        else:
            target_entry = destination.structure.get(drop.target_id)
            if target_entry is None:
                return self._noop("node_not_found", dragged_id, drop, "Drop target no longer exists.")
            parent_id = target_entry.parent_id
            index = target_entry.position + (1 if drop.zone is DropZone.AFTER else 0)

        inserted = forest_ops.insert(destination, subtree, parent_id, index)
        if inserted is destination:
            return self._noop("insert_rejected", dragged_id, drop, "Drop target cannot accept this node.")

        if same_forest:
            moved = inserted.structure[dragged_id]
            if moved.parent_id == original.parent_id and moved.position == original.position:
                return self._noop("same_position", dragged_id, drop, "Node is already at that position.")
            context.replace_forests(inserted)
        else:
            context.replace_forests(removed_forest, inserted)

        context.selected_id = dragged_id
        logger.info(
            "Edit OK: move_node node=%s parent=%s index=%s forest=%s",
            dragged_id,
            parent_id,
            "end" if index is None else index,
            target_forest.key,
        )
        return OperationResult(
            True,
            "Moved node.",
            {"node_id": dragged_id, "parent_id": parent_id, "index": index, "forest": target_forest.key},
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _noop(self, reason: str, dragged_id: str, drop: DropTarget, message: str) -> OperationResult:
        logger.info("Edit noop: move_node %s node=%s target=%s", reason, dragged_id, drop.target_id)
        return OperationResult(
            False,
            message,
            {"node_id": dragged_id, "target_id": drop.target_id, "reason": reason},
        )


def _row_for(rows: Sequence[FlatRow], node_id: str) -> Optional[FlatRow]:
    for row in rows:
        if row.node.id == node_id:
            return row
    return None
