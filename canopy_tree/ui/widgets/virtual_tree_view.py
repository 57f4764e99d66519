from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Any, Callable, Optional, Sequence, Tuple

from canopy_tree.core.models import DropTarget, DropZone
from canopy_tree.ui.navigation import KeyEvent
from canopy_tree.ui.viewport import (
    RowPayload,
    RowSource,
    ensure_visible,
    row_at_y,
    visible_window,
)

__all__ = ["VirtualTreeView"]


# Pointer travel (px) before a press turns into a drag
DRAG_THRESHOLD = 5

_SELECTED_BG = "#dbeafe"
_DRAG_SOURCE_FG = "#9ca3af"
_DROP_LINE = "#60a5fa"
_TEXT_FG = "#111827"
_LOADING_FG = "#6b7280"


class VirtualTreeView(ttk.Frame):
    """Canvas-based tree viewport that draws only the rows it shows.

    The widget knows nothing about forests: it reads rows through a
    :class:`RowSource` (``total_row_count`` and ``row_at``) and reports user
    intent through callbacks. A redraw costs O(visible rows + overscan)
    whatever the total row count.

    Callbacks:
        - on_select: row clicked; receives the node id.
        - on_toggle: expander clicked or row double-clicked; receives the node id.
        - on_key: navigation key pressed; receives a :class:`KeyEvent`.
        - on_drag_start: pointer moved past the drag threshold; receives the node id.
        - on_drag_end: pointer released; receives the dragged id and a
          :class:`DropTarget`, or None when released outside any row.
        - drag_preview: returns ``(labels, truncated)`` for the overlay.

    Notes
    -----
    - UI-only: no service or controller imports.
    - Scrolling is in whole rows; the scrollbar maps fractions onto the first
      visible row.
    """

    def __init__(
        self,
        master: "tk.Widget",
        source: RowSource,
        *,
        row_height: int = 22,
        indent: int = 18,
        overscan: int = 5,
        height: int = 400,
        on_select: Optional[Callable[[str], Any]] = None,
        on_toggle: Optional[Callable[[str], Any]] = None,
        on_key: Optional[Callable[[KeyEvent], Any]] = None,
        on_drag_start: Optional[Callable[[str], Any]] = None,
        on_drag_end: Optional[Callable[[str, Optional[DropTarget]], Any]] = None,
        drag_preview: Optional[Callable[[], Tuple[Sequence[str], bool]]] = None,
    ) -> None:
        super().__init__(master)
        self._source = source
        self.row_height = max(8, int(row_height))
        self.indent = max(0, int(indent))
        self.overscan = max(0, int(overscan))
        self._on_select = on_select
        self._on_toggle = on_toggle
        self._on_key = on_key
        self._on_drag_start = on_drag_start
        self._on_drag_end = on_drag_end
        self._drag_preview = drag_preview

        self._first_visible = 0
        self._press: Optional[Tuple[int, int, str]] = None  # (x, y, node_id)
        self._dragging_id: Optional[str] = None
        self._hover_drop: Optional[DropTarget] = None
        self._pointer: Tuple[int, int] = (0, 0)
        self.drawn_indices: range = range(0)

        self._canvas = tk.Canvas(self, highlightthickness=0, background="white", takefocus=1, height=height)
        self._vsb = ttk.Scrollbar(self, orient="vertical", command=self._on_scrollbar)
        self._canvas.grid(row=0, column=0, sticky="nsew")
        self._vsb.grid(row=0, column=1, sticky="ns")
        self.columnconfigure(0, weight=1)
        self.rowconfigure(0, weight=1)

        self._canvas.bind("<Configure>", lambda _e: self.refresh(), add="+")
        self._canvas.bind("<Button-1>", self._on_press, add="+")
        self._canvas.bind("<B1-Motion>", self._on_motion, add="+")
        self._canvas.bind("<ButtonRelease-1>", self._on_release, add="+")
        self._canvas.bind("<Double-1>", self._on_double_click, add="+")
        self._canvas.bind("<KeyPress>", self._on_keypress, add="+")
        self._canvas.bind("<MouseWheel>", self._on_mousewheel, add="+")
        self._canvas.bind("<Button-4>", lambda _e: self.scroll_rows(-3), add="+")
        self._canvas.bind("<Button-5>", lambda _e: self.scroll_rows(3), add="+")

    # ------------------------------------------------------------------ Geometry

    @property
    def first_visible(self) -> int:
        return self._first_visible

    def viewport_rows(self) -> int:
        height = self._canvas.winfo_height()
        if height <= 1:
            height = self._canvas.winfo_pixels(self._canvas.cget("height"))
        return max(1, height // self.row_height)

    def _clamp_first(self, first: int) -> int:
        total = self._source.total_row_count
        return max(0, min(int(first), max(0, total - self.viewport_rows())))

    def scroll_rows(self, delta: int) -> None:
        self.set_first_visible(self._first_visible + int(delta))

    def set_first_visible(self, first: int) -> None:
        first = self._clamp_first(first)
        if first != self._first_visible:
            self._first_visible = first
            self.refresh()

    def scroll_to_index(self, index: int) -> None:
        """Scroll the least distance that makes row ``index`` fully visible."""
        target = ensure_visible(index, self._first_visible, self.viewport_rows(), self._source.total_row_count)
        if target is not None:
            self.set_first_visible(target)

    # ------------------------------------------------------------------ Drawing

    def set_source(self, source: RowSource) -> None:
        self._source = source
        self.refresh()

    def refresh(self) -> None:
        """Redraw the visible window from the row source."""
        canvas = self._canvas
        canvas.delete("all")
        total = self._source.total_row_count
        self._first_visible = self._clamp_first(self._first_visible)
        self.drawn_indices = visible_window(self._first_visible, self.viewport_rows(), total, self.overscan)
        width = max(canvas.winfo_width(), 1)
        for index in self.drawn_indices:
            self._draw_row(self._source.row_at(index), width)
        if self._hover_drop is not None:
            self._draw_drop_indicator(width)
        if self._dragging_id is not None:
            self._draw_drag_overlay()
        self._update_scrollbar(total)

    def _row_top(self, index: int) -> int:
        return (index - self._first_visible) * self.row_height

    def _draw_row(self, row: RowPayload, width: int) -> None:
        canvas = self._canvas
        top = self._row_top(row.index)
        bottom = top + self.row_height
        mid = top + self.row_height // 2
        x = 6 + row.depth * self.indent
        tags = ("row", f"node:{row.node_id}")
        if row.is_selected:
            canvas.create_rectangle(0, top, width, bottom, fill=_SELECTED_BG, outline="", tags=tags)
        if row.is_loading:
            canvas.create_text(x + 5, mid, text="⌛", fill=_LOADING_FG, tags=tags + ("expander",))
        elif row.may_have_children or (row.is_expanded and not row.is_leaf):
            glyph = "▾" if row.is_expanded else "▸"
            canvas.create_text(x + 5, mid, text=glyph, fill=_TEXT_FG, tags=tags + ("expander",))
        fg = _DRAG_SOURCE_FG if row.is_drag_source else _TEXT_FG
        canvas.create_text(x + 16, mid, text=row.label, anchor="w", fill=fg, tags=tags + ("label",))

    def _draw_drop_indicator(self, width: int) -> None:
        drop = self._hover_drop
        index = self._index_of(drop.target_id)
        if index < 0:
            return
        top = self._row_top(index)
        if drop.zone is DropZone.ONTO:
            self._canvas.create_rectangle(1, top + 1, width - 2, top + self.row_height - 1, outline=_DROP_LINE, width=2, tags=("drop",))
        else:
            y = top if drop.zone is DropZone.BEFORE else top + self.row_height
            self._canvas.create_line(0, y, width, y, fill=_DROP_LINE, width=2, tags=("drop",))

    def _draw_drag_overlay(self) -> None:
        if self._drag_preview is None:
            return
        labels, truncated = self._drag_preview()
        x, y = self._pointer
        for i, label in enumerate(labels):
            self._canvas.create_text(x + 14, y + 14 + i * 14, text=label, anchor="w", fill=_LOADING_FG, tags=("overlay",))
        if truncated:
            self._canvas.create_text(x + 14, y + 14 + len(labels) * 14, text="…", anchor="w", fill=_LOADING_FG, tags=("overlay",))

    def _update_scrollbar(self, total: int) -> None:
        if total <= 0:
            self._vsb.set(0.0, 1.0)
            return
        lo = self._first_visible / total
        hi = min(1.0, (self._first_visible + self.viewport_rows()) / total)
        self._vsb.set(lo, hi)

    # ------------------------------------------------------------------ Hit testing

    def _index_of(self, node_id: str) -> int:
        for index in self.drawn_indices:
            if self._source.row_at(index).node_id == node_id:
                return index
        return -1

    def row_index_at(self, y: int) -> int:
        return row_at_y(y, self._first_visible * self.row_height, self.row_height, self._source.total_row_count)

    def drop_target_at(self, y: int) -> Optional[DropTarget]:
        """Map a pointer y to a drop target: row edges mean BEFORE/AFTER, middle ONTO."""
        index = self.row_index_at(y)
        if index < 0:
            return None
        row = self._source.row_at(index)
        offset = y - self._row_top(index)
        if row.is_leaf:
            zone = DropZone.BEFORE if offset < self.row_height / 2 else DropZone.AFTER
        elif offset < self.row_height / 4:
            zone = DropZone.BEFORE
        elif offset > self.row_height * 3 / 4:
            zone = DropZone.AFTER
        else:
            zone = DropZone.ONTO
        return DropTarget(zone, row.node_id)

    def _on_expander(self, x: int, row: RowPayload) -> bool:
        left = 6 + row.depth * self.indent
        return left - 2 <= x <= left + 12

    # ------------------------------------------------------------------ Events

    def _on_press(self, event: tk.Event) -> None:
        self._canvas.focus_set()
        index = self.row_index_at(event.y)
        if index < 0:
            self._press = None
            return
        row = self._source.row_at(index)
        if self._on_expander(event.x, row) and callable(self._on_toggle):
            self._press = None
            self._on_toggle(row.node_id)
            return
        self._press = (event.x, event.y, row.node_id)
        if callable(self._on_select):
            self._on_select(row.node_id)

    def _on_motion(self, event: tk.Event) -> None:
        if self._press is None:
            return
        self._pointer = (event.x, event.y)
        x0, y0, node_id = self._press
        if self._dragging_id is None:
            if abs(event.x - x0) + abs(event.y - y0) < DRAG_THRESHOLD:
                return
            self._dragging_id = node_id
            if callable(self._on_drag_start):
                self._on_drag_start(node_id)
        drop = self.drop_target_at(event.y)
        self._hover_drop = drop if drop is not None and drop.target_id != self._dragging_id else None
        self.refresh()

    def _on_release(self, event: tk.Event) -> None:
        dragged = self._dragging_id
        self._press = None
        self._dragging_id = None
        self._hover_drop = None
        if dragged is None:
            return
        drop = self.drop_target_at(event.y)
        if callable(self._on_drag_end):
            self._on_drag_end(dragged, drop)
        self.refresh()

    def _on_double_click(self, event: tk.Event) -> None:
        index = self.row_index_at(event.y)
        if index >= 0 and callable(self._on_toggle):
            self._on_toggle(self._source.row_at(index).node_id)

    def _on_keypress(self, event: tk.Event) -> Optional[str]:
        if not callable(self._on_key):
            return None
        key_event = KeyEvent(event.keysym)
        self._on_key(key_event)
        return "break" if key_event.default_prevented else None

    def _on_mousewheel(self, event: tk.Event) -> None:
        delta = getattr(event, "delta", 0)
        if delta:
            self.scroll_rows(-3 if delta > 0 else 3)

    def _on_scrollbar(self, *args: str) -> None:
        total = self._source.total_row_count
        if not args or total <= 0:
            return
        if args[0] == "moveto":
            self.set_first_visible(int(float(args[1]) * total))
        elif args[0] == "scroll":
            amount = int(args[1])
            step = self.viewport_rows() if len(args) > 2 and args[2] == "pages" else 1
            self.scroll_rows(amount * step)
