from __future__ import annotations

"""Viewport adapter contract and visible-window arithmetic.

A viewport only ever draws the rows it shows, plus a little overscan. It
talks to the tree through a :class:`RowSource`: ``total_row_count`` for the
scroll extent and ``row_at(index)`` for each row it is about to draw.
``row_at`` is idempotent and side-effect free, so it can be called for the
same index on every redraw.

The helpers below work in row units with a fixed row height; pixels only
appear at the edges (``first_row_at`` / ``scroll_offset_for``).
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from canopy_tree.core.models import FlatRow

__all__ = [
    "RowPayload",
    "RowSource",
    "visible_window",
    "first_row_at",
    "row_at_y",
    "scroll_offset_for",
    "ensure_visible",
]


@dataclass(frozen=True)
class RowPayload:
    """Everything a viewport needs to draw one row."""

    index: int
    node_id: str
    label: str
    depth: int
    kind: str
    forest_key: str
    is_leaf: bool
    is_expanded: bool
    is_loading: bool
    may_have_children: bool
    is_selected: bool
    is_drag_source: bool


class RowSource:
    """Read-only view of the current rows for a viewport.

    Parameters
    ----------
    rows_getter : Callable[[], Sequence[FlatRow]]
        Returns the current flattened rows. Called on every access, so a
        new flatten result is picked up without re-wiring.
    selected_getter, drag_source_getter : Callable[[], Optional[str]], optional
        Return the selected and dragged node ids.
    """

    def __init__(
        self,
        rows_getter: Callable[[], Sequence[FlatRow]],
        selected_getter: Optional[Callable[[], Optional[str]]] = None,
        drag_source_getter: Optional[Callable[[], Optional[str]]] = None,
    ) -> None:
        self._rows_getter = rows_getter
        self._selected_getter = selected_getter or (lambda: None)
        self._drag_source_getter = drag_source_getter or (lambda: None)

    @property
    def total_row_count(self) -> int:
        return len(self._rows_getter())

    def row_at(self, index: int) -> RowPayload:
        """Return the payload of row ``index``.

        Raises
        ------
        IndexError
            If ``index`` is outside ``[0, total_row_count)``.
        """
        rows = self._rows_getter()
        if index < 0 or index >= len(rows):
            raise IndexError(f"row index {index} out of range (0..{len(rows) - 1})")
        row = rows[index]
        node = row.node
        return RowPayload(
            index=index,
            node_id=node.id,
            label=node.label,
            depth=row.depth,
            kind=node.kind,
            forest_key=row.forest_key,
            is_leaf=node.is_leaf,
            is_expanded=node.is_expanded,
            is_loading=node.is_loading,
            may_have_children=node.may_have_children,
            is_selected=node.id == self._selected_getter(),
            is_drag_source=node.id == self._drag_source_getter(),
        )


def visible_window(first_visible: int, viewport_rows: int, total: int, overscan: int = 0) -> range:
    """Return the indices to draw: the visible rows widened by ``overscan``.

    >>> visible_window(100, 20, 10000, 5)
    range(95, 125)
    """
    if total <= 0 or viewport_rows <= 0:
        return range(0)
    overscan = max(0, int(overscan))
    first = max(0, min(int(first_visible), total - 1))
    start = max(0, first - overscan)
    stop = min(total, first + int(viewport_rows) + overscan)
    return range(start, stop)


def first_row_at(scroll_px: float, row_height: int) -> int:
    """Index of the row under the top edge for a pixel scroll offset."""
    if row_height <= 0:
        raise ValueError("row_height must be positive")
    return max(0, int(scroll_px // row_height))


def row_at_y(y: float, scroll_px: float, row_height: int, total: int) -> int:
    """Index of the row under viewport coordinate ``y``, or -1 below the last row."""
    index = first_row_at(scroll_px + y, row_height)
    return index if index < total else -1


def scroll_offset_for(first_visible: int, row_height: int) -> int:
    return max(0, int(first_visible)) * int(row_height)


def ensure_visible(index: int, first_visible: int, viewport_rows: int, total: int) -> Optional[int]:
    """Return the new first visible row that brings ``index`` into view.

    None means no scroll is needed (or the index is out of range). Scrolls
    the least distance: up to put the row at the top, or down to put it at
    the bottom.
    """
    if total <= 0 or not (0 <= index < total):
        return None
    viewport_rows = max(1, int(viewport_rows))
    if index < first_visible:
        return index
    last_visible = first_visible + viewport_rows - 1
    if index > last_visible:
        return max(0, min(index - viewport_rows + 1, total - viewport_rows))
    return None
