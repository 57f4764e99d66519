"""Tk widgets for Canopy Tree."""

from .virtual_tree_view import VirtualTreeView

__all__ = ["VirtualTreeView"]
