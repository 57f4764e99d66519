from __future__ import annotations

"""Pure structural operations on :class:`Forest` values.

Every function takes a Forest and returns a new Forest (or the very same
instance when the request is a structural no-op). Nothing is mutated in
place: updates copy only the path from the touched node up to its root, so
a node deep in a large tree costs O(depth) tuple copies plus the sibling
tuples along the way. The structural slot map (parent, position, depth per
id) is shared untouched by expand-state updates; insert, remove and
set_children copy it and patch only the slots they move.

Requests against ids that are not present are silently ignored; these are
expected races between the UI and fast mutation, not failures. Traversals use
explicit stacks so pathological depths never hit the recursion limit.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from canopy_tree.core.models import Forest, NodeSlot, TreeNode

__all__ = [
    "TreeStats",
    "find_node",
    "contains",
    "path_to",
    "subtree_ids",
    "toggle_expanded",
    "set_expanded",
    "set_loading",
    "set_children",
    "remove",
    "insert",
    "is_descendant_or_self",
    "add_node",
    "expand_all",
    "collapse_all",
    "compute_stats",
    "new_node_id",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeStats:
    """Node counts across one or more forests."""

    total_nodes: int = 0
    containers: int = 0
    leaves: int = 0
    expanded: int = 0
    loading: int = 0


def new_node_id() -> str:
    return uuid.uuid4().hex[:12]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_node(forest: Forest, node_id: Optional[str]) -> Optional[TreeNode]:
    return forest.get(node_id)


def contains(forest: Forest, node_id: Optional[str]) -> bool:
    return node_id is not None and node_id in forest.structure


def path_to(forest: Forest, node_id: str) -> List[str]:
    """Return ids from the root down to ``node_id`` (inclusive), or [] if absent."""
    structure = forest.structure
    path: List[str] = []
    current: Optional[str] = node_id
    while current is not None:
        slot = structure.get(current)
        if slot is None:
            return []
        path.append(current)
        current = slot.parent_id
    path.reverse()
    return path


def subtree_ids(node: TreeNode) -> Set[str]:
    """Collect the ids of ``node`` and all of its known descendants."""
    ids: Set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        ids.add(current.id)
        if current.children:
            stack.extend(current.children)
    return ids


def is_descendant_or_self(forest: Forest, ancestor_id: str, node_id: str) -> bool:
    """Return True if ``node_id`` is ``ancestor_id`` or lies below it.

    Walks structural parent links upward from ``node_id``; O(depth).
    """
    if ancestor_id == node_id:
        return True
    structure = forest.structure
    slot = structure.get(node_id)
    while slot is not None and slot.parent_id is not None:
        if slot.parent_id == ancestor_id:
            return True
        slot = structure.get(slot.parent_id)
    return False


# ---------------------------------------------------------------------------
# Path copying
# ---------------------------------------------------------------------------

def _rebuild_up(
    forest: Forest,
    node_id: str,
    new_node: Optional[TreeNode],
    structure: Mapping[str, NodeSlot],
) -> Forest:
    """Swap the node at ``node_id`` for ``new_node`` and copy every ancestor.

    ``new_node=None`` drops the node from its parent's children (or roots).
    ``structure`` is the slot map of the resulting forest.
    """
    chain = forest.ancestry(node_id)
    replacement = new_node
    for level in range(len(chain) - 1, 0, -1):
        position = chain[level][1]
        parent = chain[level - 1][0]
        siblings = list(parent.children or ())
        if replacement is None:
            del siblings[position]
        else:
            siblings[position] = replacement
        replacement = parent.evolve(children=tuple(siblings))
    roots = list(forest.roots)
    if replacement is None:
        del roots[chain[0][1]]
    else:
        roots[chain[0][1]] = replacement
    return forest.with_roots(tuple(roots), structure)


def _update(forest: Forest, node_id: Optional[str], fn: Callable[[TreeNode], TreeNode]) -> Forest:
    """Replace one node with ``fn(node)``; ``fn`` must keep its children."""
    node = forest.get(node_id)
    if node is None:
        return forest
    updated = fn(node)
    if updated is node:
        return forest
    return _rebuild_up(forest, node_id, updated, forest.structure)


def _add_slots(structure: Dict[str, NodeSlot], node: TreeNode, parent_id: Optional[str], position: int, depth: int) -> None:
    stack = [(node, parent_id, position, depth)]
    while stack:
        current, owner, pos, level = stack.pop()
        structure[current.id] = NodeSlot(owner, pos, level)
        if current.children:
            for i, child in enumerate(current.children):
                stack.append((child, current.id, i, level + 1))


def _drop_slots(structure: Dict[str, NodeSlot], node: TreeNode) -> None:
    for node_id in subtree_ids(node):
        structure.pop(node_id, None)


def _renumber(
    structure: Dict[str, NodeSlot],
    siblings: Sequence[TreeNode],
    start: int,
    parent_id: Optional[str],
    depth: int,
) -> None:
    """Rewrite the slots of ``siblings[start:]`` after an insertion or removal."""
    for position in range(start, len(siblings)):
        structure[siblings[position].id] = NodeSlot(parent_id, position, depth)


# ---------------------------------------------------------------------------
# Expand / collapse / loading
# ---------------------------------------------------------------------------

def toggle_expanded(forest: Forest, node_id: str) -> Forest:
    """Flip ``is_expanded`` on a node whose children are known.

    No-op when the node is absent, mid-load, or its children are still
    unknown (the lazy loader owns that transition).
    """
    def flip(node: TreeNode) -> TreeNode:
        if node.is_loading or node.children is None:
            return node
        return node.evolve(is_expanded=not node.is_expanded)

    return _update(forest, node_id, flip)


def set_expanded(forest: Forest, node_id: str, expanded: bool) -> Forest:
    def apply(node: TreeNode) -> TreeNode:
        if node.children is None or node.is_expanded == bool(expanded):
            return node
        return node.evolve(is_expanded=bool(expanded))

    return _update(forest, node_id, apply)


def set_loading(forest: Forest, node_id: str, loading: bool) -> Forest:
    def apply(node: TreeNode) -> TreeNode:
        if node.is_loading == bool(loading):
            return node
        return node.evolve(is_loading=bool(loading))

    return _update(forest, node_id, apply)


def _reparent(child: TreeNode, parent_id: Optional[str], kind: str) -> TreeNode:
    if child.parent_id == parent_id and child.kind == kind:
        return child
    return child.evolve(parent_id=parent_id, kind=kind)


def set_children(forest: Forest, node_id: str, children: Iterable[TreeNode]) -> Forest:
    """Install fetched children under ``node_id``; used by the lazy loader.

    Clears ``is_loading`` and expands the node. Incoming nodes whose id (or
    any descendant id) already exists elsewhere in the forest are dropped.
    """
    node = forest.get(node_id)
    if node is None:
        return forest
    if node.is_leaf:
        return _update(forest, node_id, lambda n: n.evolve(is_loading=False))

    structure = dict(forest.structure)
    # The node's current children are replaced, so their ids become free.
    for child in node.children or ():
        _drop_slots(structure, child)
    depth = structure[node_id].depth + 1
    accepted: List[TreeNode] = []
    for child in children:
        ids = subtree_ids(child)
        if any(i in structure for i in ids):
            logger.warning(
                "set_children: dropping child %s of %s (duplicate id)", child.id, node_id
            )
            continue
        moved = _reparent(child, node_id, forest.kind)
        _add_slots(structure, moved, node_id, len(accepted), depth)
        accepted.append(moved)

    updated = node.evolve(children=tuple(accepted), is_loading=False, is_expanded=True)
    return _rebuild_up(forest, node_id, updated, structure)


# ---------------------------------------------------------------------------
# Remove / insert
# ---------------------------------------------------------------------------

def remove(forest: Forest, node_id: str) -> Tuple[Forest, Optional[TreeNode]]:
    """Detach ``node_id`` and its whole subtree.

    Returns ``(forest', subtree)``; ``subtree`` is None (and the forest is
    returned unchanged) when the id is not present.
    """
    slot = forest.structure.get(node_id)
    if slot is None:
        return forest, None
    node = forest.get(node_id)
    if slot.parent_id is None:
        siblings = forest.roots
    else:
        siblings = forest.get(slot.parent_id).children
    remaining = siblings[: slot.position] + siblings[slot.position + 1 :]

    structure = dict(forest.structure)
    _drop_slots(structure, node)
    _renumber(structure, remaining, slot.position, slot.parent_id, slot.depth)
    return _rebuild_up(forest, node_id, None, structure), node


def insert(
    forest: Forest,
    subtree: TreeNode,
    target_parent_id: Optional[str],
    index: Optional[int] = None,
) -> Forest:
    """Insert ``subtree`` under ``target_parent_id`` (or as a root when None).

    ``index`` None or out of range appends. The subtree root's ``parent_id``
    is rewritten and the target parent is expanded so the move is visible.
    The forest is returned unchanged if the target is absent or a leaf, or
    if the subtree carries an id that already exists in the forest.
    """
    if any(i in forest.structure for i in subtree_ids(subtree)):
        logger.debug("insert: rejected %s (duplicate id in forest %s)", subtree.id, forest.key)
        return forest

    moved = _reparent(subtree, target_parent_id, forest.kind)

    if target_parent_id is None:
        roots = list(forest.roots)
        position = _clamp_index(index, len(roots))
        roots.insert(position, moved)
        structure = dict(forest.structure)
        _add_slots(structure, moved, None, position, 0)
        _renumber(structure, roots, position + 1, None, 0)
        return forest.with_roots(tuple(roots), structure)

    parent = forest.get(target_parent_id)
    if parent is None or parent.is_leaf:
        return forest
    siblings = list(parent.children or ())
    position = _clamp_index(index, len(siblings))
    siblings.insert(position, moved)
    depth = forest.structure[target_parent_id].depth + 1
    structure = dict(forest.structure)
    _add_slots(structure, moved, target_parent_id, position, depth)
    _renumber(structure, siblings, position + 1, target_parent_id, depth)
    updated = parent.evolve(children=tuple(siblings), is_expanded=True)
    return _rebuild_up(forest, target_parent_id, updated, structure)


def _clamp_index(index: Optional[int], size: int) -> int:
    if index is None or index < 0 or index > size:
        return size
    return index


# ---------------------------------------------------------------------------
# Creation and bulk expand state
# ---------------------------------------------------------------------------

def add_node(
    forest: Forest,
    parent_id: Optional[str],
    fields: Mapping[str, object],
    *,
    is_leaf: bool = False,
    node_id: Optional[str] = None,
) -> Tuple[Forest, Optional[str]]:
    """Create a node as the last child of ``parent_id`` (or as the last root).

    Returns ``(forest', new_id)``; ``new_id`` is None when the parent is
    absent or a leaf. New containers start with known-empty children.
    """
    if parent_id is not None:
        parent = forest.get(parent_id)
        if parent is None or parent.is_leaf:
            return forest, None
    new_id = node_id or new_node_id()
    if new_id in forest.structure:
        return forest, None
    node = TreeNode(
        id=new_id,
        kind=forest.kind,
        fields=dict(fields),
        parent_id=parent_id,
        children=(),
        is_leaf=is_leaf,
    )
    updated = insert(forest, node, parent_id, None)
    if updated is forest:
        return forest, None
    return updated, new_id


def expand_all(forest: Forest) -> Forest:
    """Expand every node with known, non-empty children. Never triggers fetches."""
    return _rebuild_all(
        forest,
        lambda n: n.evolve(is_expanded=True) if n.children and not n.is_expanded else n,
    )


def collapse_all(forest: Forest) -> Forest:
    return _rebuild_all(
        forest,
        lambda n: n.evolve(is_expanded=False) if n.is_expanded else n,
    )


def _rebuild_all(forest: Forest, fn: Callable[[TreeNode], TreeNode]) -> Forest:
    """Apply ``fn`` to every node, rebuilding parents bottom-up.

    Uses a post-order walk with an explicit stack; untouched subtrees are
    shared with the input forest.
    """
    built: List[List[TreeNode]] = [[]]
    stack: List[Tuple[TreeNode, bool]] = [(n, False) for n in reversed(forest.roots)]
    changed = False
    while stack:
        node, visited = stack.pop()
        if not visited and node.children:
            stack.append((node, True))
            built.append([])
            stack.extend((c, False) for c in reversed(node.children))
            continue
        if visited:
            new_children = tuple(built.pop())
            if any(a is not b for a, b in zip(new_children, node.children or ())):
                node = node.evolve(children=new_children)
        mapped = fn(node)
        if mapped is not node:
            changed = True
        built[-1].append(mapped)
    roots = tuple(built[0])
    if not changed and all(a is b for a, b in zip(roots, forest.roots)):
        return forest
    return forest.with_roots(roots, forest.structure)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def compute_stats(forests: Sequence[Forest]) -> TreeStats:
    total = containers = leaves = expanded = loading = 0
    for forest in forests:
        for node in forest.iter_nodes():
            total += 1
            if node.is_leaf:
                leaves += 1
            else:
                containers += 1
            if node.is_expanded and node.children is not None:
                expanded += 1
            if node.is_loading:
                loading += 1
    return TreeStats(total, containers, leaves, expanded, loading)
