"""UI controllers mediating between tree widgets and the core services."""

from .tree_controller import TreeController

__all__: list[str] = ["TreeController"]
