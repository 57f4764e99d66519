from __future__ import annotations

"""Projection of forests onto the ordered list of visible rows.

A row exists for every root and, recursively, for every child of an expanded
node whose children are known. The walk is pre-order with an explicit stack,
so the cost is proportional to the number of *visible* rows: collapsed
subtrees are never entered, however large they are.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from canopy_tree.core.models import FlatRow, Forest

__all__ = ["flatten", "flatten_forests", "row_index_of", "collect_drag_preview"]


DEFAULT_PREVIEW_LIMIT = 20


def flatten(forest: Forest) -> Tuple[FlatRow, ...]:
    """Return the visible rows of ``forest`` in display order."""
    rows: List[FlatRow] = []
    stack = [(node, 0) for node in reversed(forest.roots)]
    while stack:
        node, depth = stack.pop()
        rows.append(FlatRow(node, depth, forest.key))
        if node.is_expanded and node.children:
            for child in reversed(node.children):
                stack.append((child, depth + 1))
    return tuple(rows)


def flatten_forests(forests: Iterable[Forest]) -> Tuple[FlatRow, ...]:
    """Concatenate the visible rows of several forests, in the given order."""
    rows: List[FlatRow] = []
    for forest in forests:
        rows.extend(flatten(forest))
    return tuple(rows)


def row_index_of(rows: Sequence[FlatRow], node_id: Optional[str]) -> int:
    """Return the index of the row showing ``node_id``, or -1 when hidden."""
    if node_id is None:
        return -1
    for index, row in enumerate(rows):
        if row.node.id == node_id:
            return index
    return -1


def collect_drag_preview(
    rows: Sequence[FlatRow],
    node_id: str,
    limit: int = DEFAULT_PREVIEW_LIMIT,
) -> Tuple[Tuple[FlatRow, ...], bool]:
    """Return the rows shown in the drag overlay for ``node_id``.

    The dragged row and its visible descendants form a contiguous run of
    rows deeper than the dragged one. At most ``limit`` rows are returned;
    the second element tells whether the run was cut short.

    Returns
    -------
    tuple
        ``(rows, truncated)``; ``((), False)`` if the node is not visible.
    """
    start = row_index_of(rows, node_id)
    if start < 0:
        return (), False
    base_depth = rows[start].depth
    end = start + 1
    while end < len(rows) and rows[end].depth > base_depth:
        end += 1
    limit = max(1, int(limit))
    run = rows[start:end]
    return tuple(run[:limit]), len(run) > limit
