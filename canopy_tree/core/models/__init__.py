from __future__ import annotations

"""Shared data structures used across the Canopy Tree core.

This package exposes the immutable value objects the tree engine works on:
nodes, forests, flattened rows, drop descriptors and the explicitly owned
:class:`TreeContext`. It is intentionally free of UI / I/O code so that the
contained objects can be reused in any context (unit-tests, CLI, GUI, etc.).
"""

from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .drop import DropTarget, DropZone
from .kinds import BOOK_KIND, FOLDER_KIND, NodeKind, get_kind, register_kind

__all__ = [
    "TreeNode",
    "Forest",
    "IndexEntry",
    "ForestIndex",
    "NodeSlot",
    "FlatRow",
    "TreeContext",
    "DropZone",
    "DropTarget",
    "NodeKind",
    "FOLDER_KIND",
    "BOOK_KIND",
    "get_kind",
    "register_kind",
]


@dataclass(frozen=True)
class TreeNode:
    """One node of a forest.

    Attributes
    ----------
    id
        Opaque identifier, unique within its forest and stable across moves.
    kind
        Name of the node kind (``"folder"``, ``"book"``...).
    fields
        Display payload, opaque to the engine.
    parent_id
        Id of the owning node, or None for a root.
    children
        Ordered child nodes; None while unknown (never fetched), ``()`` when
        known to be empty.
    is_expanded
        Whether the children are shown. Only meaningful when children are known.
    is_loading
        True only while a lazy fetch for this node is in flight.
    is_leaf
        Leaf-like variant; leaves never own children.
    """

    id: str
    kind: str
    fields: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None
    children: Optional[Tuple["TreeNode", ...]] = None
    is_expanded: bool = False
    is_loading: bool = False
    is_leaf: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("TreeNode id must be a non-empty string")
        if self.children is not None and not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        if self.is_leaf and self.children is None:
            object.__setattr__(self, "children", ())

    @property
    def children_known(self) -> bool:
        return self.children is not None

    @property
    def has_children(self) -> bool:
        """Return True if children are known and non-empty."""
        return bool(self.children)

    @property
    def may_have_children(self) -> bool:
        """Return True if expanding could reveal rows (known non-empty or unknown)."""
        if self.is_leaf:
            return False
        return self.children is None or len(self.children) > 0

    @property
    def label(self) -> str:
        return get_kind(self.kind).label_for(self.fields)

    def evolve(self, **changes: Any) -> "TreeNode":
        return replace(self, **changes)


@dataclass(frozen=True)
class NodeSlot:
    """Structural location of a node: parent, position among siblings, depth."""

    parent_id: Optional[str]
    position: int
    depth: int


@dataclass(frozen=True)
class IndexEntry:
    """Location of a node inside a :class:`Forest`, with the node itself."""

    node: TreeNode
    parent_id: Optional[str]
    position: int
    depth: int


class ForestIndex(Mapping[str, IndexEntry]):
    """Read-only id -> :class:`IndexEntry` view over a forest's structure.

    Membership and length are O(1); an entry resolves its node by walking
    down from the root along stored positions, O(depth).
    """

    __slots__ = ("_forest",)

    def __init__(self, forest: "Forest") -> None:
        self._forest = forest

    def __getitem__(self, node_id: str) -> IndexEntry:
        slot = self._forest.structure[node_id]
        return IndexEntry(self._forest._locate(node_id), slot.parent_id, slot.position, slot.depth)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._forest.structure

    def __iter__(self) -> Iterator[str]:
        return iter(self._forest.structure)

    def __len__(self) -> int:
        return len(self._forest.structure)


@dataclass(frozen=True)
class Forest:
    """Immutable ordered collection of root nodes of a single kind.

    Every structural operation in :mod:`canopy_tree.core.forest_ops` returns a
    new Forest; instances are never mutated, which gives readers (the
    flattener, a render pass) snapshot semantics for free.

    ``structure`` maps every id to its :class:`NodeSlot`. It is built on first
    use when not supplied; operations that keep the shape of the tree hand
    the same mapping to the new Forest, and structural edits pass a patched
    copy, so no operation re-walks the whole tree to rebuild it.
    """

    key: str
    kind: str
    roots: Tuple[TreeNode, ...] = ()
    slots: Optional[Mapping[str, NodeSlot]] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.roots, tuple):
            object.__setattr__(self, "roots", tuple(self.roots))

    @cached_property
    def structure(self) -> Mapping[str, NodeSlot]:
        """Id -> slot map; walked once with an explicit stack when not supplied."""
        if self.slots is not None:
            return self.slots
        entries: Dict[str, NodeSlot] = {}
        stack: List[Tuple[TreeNode, Optional[str], int, int]] = [
            (node, None, pos, 0) for pos, node in reversed(list(enumerate(self.roots)))
        ]
        while stack:
            node, parent_id, position, depth = stack.pop()
            entries[node.id] = NodeSlot(parent_id, position, depth)
            if node.children:
                for pos in range(len(node.children) - 1, -1, -1):
                    stack.append((node.children[pos], node.id, pos, depth + 1))
        return entries

    @cached_property
    def index(self) -> ForestIndex:
        return ForestIndex(self)

    @cached_property
    def _resolved(self) -> Dict[str, TreeNode]:
        return {}

    def ancestry(self, node_id: str) -> List[Tuple[TreeNode, int]]:
        """Return ``(node, position)`` pairs from the root down to ``node_id``.

        Empty when the id is absent. O(depth).
        """
        structure = self.structure
        positions: List[int] = []
        current: Optional[str] = node_id
        while current is not None:
            slot = structure.get(current)
            if slot is None:
                return []
            positions.append(slot.position)
            current = slot.parent_id
        position = positions.pop()
        node = self.roots[position]
        chain = [(node, position)]
        while positions:
            position = positions.pop()
            node = node.children[position]
            chain.append((node, position))
        return chain

    def _locate(self, node_id: str) -> TreeNode:
        node = self._resolved.get(node_id)
        if node is None:
            chain = self.ancestry(node_id)
            if not chain:
                raise KeyError(node_id)
            node = chain[-1][0]
            self._resolved[node_id] = node
        return node

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.structure

    def get(self, node_id: Optional[str]) -> Optional[TreeNode]:
        if node_id is None or node_id not in self.structure:
            return None
        return self._locate(node_id)

    def __len__(self) -> int:
        return len(self.structure)

    def iter_nodes(self) -> Iterator[TreeNode]:
        """Yield every node in depth-first pre-order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def with_roots(
        self,
        roots: Tuple[TreeNode, ...],
        slots: Optional[Mapping[str, NodeSlot]] = None,
    ) -> "Forest":
        """Return a Forest over ``roots``; ``slots`` must describe their shape."""
        return Forest(key=self.key, kind=self.kind, roots=tuple(roots), slots=slots)


@dataclass(frozen=True)
class FlatRow:
    """A single renderable line: a visible node plus its indent depth."""

    node: TreeNode
    depth: int
    forest_key: str

    @property
    def node_id(self) -> str:
        return self.node.id


@dataclass
class TreeContext:
    """In-memory tree state owned by a single writer (the controller).

    Attributes
    ----------
    forests
        Ordered mapping of forest key to its current :class:`Forest`. Entries
        are replaced wholesale on every mutation.
    selected_id
        Id of the selected row, or None. Weak reference: cleared when the
        node disappears.
    drag_source_id
        Id of the node being dragged while a gesture is in progress.
    """

    forests: Dict[str, Forest] = field(default_factory=dict)
    selected_id: Optional[str] = None
    drag_source_id: Optional[str] = None

    @classmethod
    def from_forests(cls, forests: List[Forest]) -> "TreeContext":
        return cls(forests={f.key: f for f in forests})

    def forest_of(self, node_id: Optional[str]) -> Optional[Forest]:
        """Return the forest currently containing ``node_id``."""
        if node_id is None:
            return None
        for forest in self.forests.values():
            if node_id in forest:
                return forest
        return None

    def find_node(self, node_id: Optional[str]) -> Optional[TreeNode]:
        forest = self.forest_of(node_id)
        return forest.get(node_id) if forest is not None else None

    def contains(self, node_id: Optional[str]) -> bool:
        return self.forest_of(node_id) is not None

    def replace_forests(self, *updated: Forest) -> None:
        """Commit new Forest values, keeping the original forest order."""
        merged = dict(self.forests)
        for forest in updated:
            merged[forest.key] = forest
        self.forests = merged
