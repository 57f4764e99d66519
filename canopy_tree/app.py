# -*- coding: utf-8 -*-
"""Tk-based reference front-end for Canopy Tree.

Exposes the :class:`CanopyTreeApp` widget, which is instantiated by ``run.py``.
It wires the demo seed, the mock data source and a :class:`TreeController`
to a :class:`VirtualTreeView` plus a small toolbar and a stats line.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import tkinter as tk
from tkinter import ttk

from canopy_tree.config import ConfigManager
from canopy_tree.core.seed import MockChildrenSource, build_demo_context
from canopy_tree.ui.controllers.tree_controller import TreeController
from canopy_tree.ui.widgets.virtual_tree_view import VirtualTreeView
from canopy_tree.version import get_app_version

logger = logging.getLogger(__name__)

__all__ = ["CanopyTreeApp"]


class CanopyTreeApp:
    """Main application widget wrapping the tree view and its toolbar."""

    def __init__(self, root: tk.Tk, settings: Optional[Dict[str, Any]] = None) -> None:
        self.root = root
        self.settings: Dict[str, Any] = settings if settings is not None else ConfigManager().get_tree_settings()
        viewport = self.settings.get("viewport") or {}
        demo = self.settings.get("demo") or {}

        self.controller = TreeController.create(
            build_demo_context(demo),
            MockChildrenSource(
                lambda: self.controller.context,
                delay_ms=int(demo.get("fetch_delay_ms", 500)),
                min_children=int(demo.get("fetch_min_children", 2)),
                max_children=int(demo.get("fetch_max_children", 6)),
                leaf_ratio=float(demo.get("leaf_ratio", 0.3)),
            ),
            run_in_thread=self._run_in_thread,
            seed_factory=lambda: build_demo_context(demo),
            settings=self.settings,
        )

        self.main_frame = ttk.Frame(self.root, padding=8)
        self.main_frame.pack(fill="both", expand=True)
        self._build_toolbar()

        self.tree_view = VirtualTreeView(
            self.main_frame,
            self.controller.row_source(),
            row_height=int(viewport.get("row_height", 22)),
            indent=int(viewport.get("indent", 18)),
            overscan=int(viewport.get("overscan", 5)),
            on_select=self.controller.select,
            on_toggle=self.controller.toggle,
            on_key=self.controller.handle_key,
            on_drag_start=self.controller.handle_drag_start,
            on_drag_end=self._on_drag_end,
            drag_preview=self._drag_preview_labels,
        )
        self.tree_view.pack(fill="both", expand=True, pady=(6, 6))

        self.status_var = tk.StringVar(value="")
        self.stats_var = tk.StringVar(value="")
        ttk.Label(self.main_frame, textvariable=self.stats_var).pack(fill="x")
        ttk.Label(self.main_frame, textvariable=self.status_var, foreground="#6b7280").pack(fill="x")

        self.controller.on_rows_changed(lambda _rows: self._on_rows_changed())
        self.controller.on_scroll_request(self.tree_view.scroll_to_index)
        self._on_rows_changed()
        logger.info("Canopy Tree %s started", get_app_version())

    # ------------------------------------------------------------------ Layout

    def _build_toolbar(self) -> None:
        bar = ttk.Frame(self.main_frame)
        bar.pack(fill="x")
        actions = (
            ("Expand all", self.controller.expand_all),
            ("Collapse all", self.controller.collapse_all),
            ("New folder", self._add_folder),
            ("Delete", self._delete_selected),
            ("Undo", self.controller.undo),
            ("Redo", self.controller.redo),
            ("Reset", self.controller.reset),
        )
        self._buttons: Dict[str, ttk.Button] = {}
        for label, command in actions:
            btn = ttk.Button(bar, text=label, command=command)
            btn.pack(side="left", padx=(0, 4))
            self._buttons[label] = btn

    # ------------------------------------------------------------------ Callbacks

    def _on_rows_changed(self) -> None:
        self.tree_view.refresh()
        stats = self.controller.get_stats()
        self.stats_var.set(
            f"{stats.total_nodes} nodes | {stats.containers} folders | {stats.leaves} items"
            f" | {stats.expanded} expanded | {len(self.controller.rows)} rows"
        )
        self._buttons["Undo"].state(["!disabled"] if self.controller.can_undo() else ["disabled"])
        self._buttons["Redo"].state(["!disabled"] if self.controller.can_redo() else ["disabled"])

    def _on_drag_end(self, active_id, drop) -> None:
        result = self.controller.handle_drag_end(active_id, drop)
        if drop is not None:
            self.status_var.set(result.message)

    def _drag_preview_labels(self):
        rows, truncated = self.controller.drag_preview()
        return [("  " * (r.depth - rows[0].depth)) + r.node.label for r in rows], truncated

    def _add_folder(self) -> None:
        parent_id = self.controller.selected_id
        node = self.controller.context.find_node(parent_id)
        if node is not None and node.is_leaf:
            parent_id = node.parent_id
        forest = self.controller.context.forest_of(parent_id) if parent_id else None
        forest_key = forest.key if forest is not None else next(iter(self.controller.context.forests), None)
        fields = {"title": "New shelf"} if forest is not None and forest.kind == "book" else {"name": "New folder"}
        result = self.controller.handle_add(parent_id, fields, forest_key=forest_key)
        self.status_var.set(result.message)
        if result.success:
            self.controller.select(result.details["node_id"])

    def _delete_selected(self) -> None:
        selected = self.controller.selected_id
        if selected is None:
            self.status_var.set("Nothing selected.")
            return
        self.status_var.set(self.controller.handle_delete(selected).message)

    def _run_in_thread(self, work_fn, done_fn=None) -> None:
        """Run work_fn in a daemon thread; deliver result to done_fn via Tk after()."""
        def _runner():
            result = work_fn()
            try:
                self.root.after(0, (lambda r=result: done_fn(r) if callable(done_fn) else None))
            except RuntimeError:
                # Main loop already gone (window closed mid-fetch)
                logger.debug("Dropped background result: UI is shutting down")

        threading.Thread(target=_runner, daemon=True).start()
