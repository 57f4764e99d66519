"""Small builders for hand-written test forests.

``folder("A", folder("B"), leaf("c"))`` builds nodes without parent ids;
:func:`forest` links them so every ``parent_id`` matches its owner.
"""

from typing import Optional

from canopy_tree.core.models import Forest, TreeContext, TreeNode


def folder(node_id, *children, expanded=True, unknown=False, loading=False, kind="folder", name=None):
    return TreeNode(
        id=node_id,
        kind=kind,
        fields={"name": name or node_id},
        children=None if unknown else tuple(children),
        is_expanded=expanded and not unknown,
        is_loading=loading,
    )


def leaf(node_id, kind="folder", name=None):
    return TreeNode(id=node_id, kind=kind, fields={"name": name or node_id}, is_leaf=True)


def _link(node: TreeNode, parent_id: Optional[str], kind: str) -> TreeNode:
    children = None
    if node.children is not None:
        children = tuple(_link(c, node.id, kind) for c in node.children)
    return node.evolve(parent_id=parent_id, children=children, kind=kind)


def forest(*roots, key="main", kind="folder") -> Forest:
    return Forest(key, kind, tuple(_link(r, None, kind) for r in roots))


def context(*forests, selected=None) -> TreeContext:
    ctx = TreeContext.from_forests(list(forests))
    ctx.selected_id = selected
    return ctx


def ids(rows):
    return [r.node.id for r in rows]


def depths(rows):
    return [(r.node.id, r.depth) for r in rows]


def child_ids(f: Forest, node_id: Optional[str]):
    if node_id is None:
        return [r.id for r in f.roots]
    return [c.id for c in (f.get(node_id).children or ())]
