import pytest

from canopy_tree.core import forest_ops
from canopy_tree.core.flatten import flatten
from canopy_tree.core.models import Forest, TreeNode

from tests.tree_factory import child_ids, folder, forest, ids, leaf


def _all_ids(f):
    return [n.id for n in f.iter_nodes()]


def _assert_parent_links(f):
    for entry in f.index.values():
        node = entry.node
        assert node.parent_id == entry.parent_id
        for child in node.children or ():
            assert child.parent_id == node.id


# --------------------------------------------------------------------- lookups

def test_is_descendant_or_self_holds_for_every_node(deep_forest):
    for node_id in _all_ids(deep_forest):
        assert forest_ops.is_descendant_or_self(deep_forest, node_id, node_id)


def test_is_descendant_or_self_walks_ancestors(deep_forest):
    assert forest_ops.is_descendant_or_self(deep_forest, "A", "D")
    assert forest_ops.is_descendant_or_self(deep_forest, "B", "e")
    assert not forest_ops.is_descendant_or_self(deep_forest, "D", "A")
    assert not forest_ops.is_descendant_or_self(deep_forest, "C", "D")
    assert not forest_ops.is_descendant_or_self(deep_forest, "A", "missing")


def test_path_to_and_subtree_ids(deep_forest):
    assert forest_ops.path_to(deep_forest, "e") == ["A", "B", "e"]
    assert forest_ops.path_to(deep_forest, "nope") == []
    assert forest_ops.subtree_ids(deep_forest.get("B")) == {"B", "D", "e"}


def test_index_reports_depth_and_position(deep_forest):
    entry = deep_forest.index["e"]
    assert entry.parent_id == "B"
    assert entry.position == 1
    assert entry.depth == 2


# ------------------------------------------------------------- toggle/expand

def test_toggle_twice_restores_state_and_rows(deep_forest):
    before = flatten(deep_forest)
    once = forest_ops.toggle_expanded(deep_forest, "B")
    assert ids(flatten(once)) == ["A", "B", "C", "F"]
    twice = forest_ops.toggle_expanded(once, "B")
    assert twice.get("B").is_expanded == deep_forest.get("B").is_expanded
    assert flatten(twice) == before


def test_toggle_is_noop_for_unknown_loading_or_absent(deep_forest):
    assert forest_ops.toggle_expanded(deep_forest, "D") is deep_forest
    assert forest_ops.toggle_expanded(deep_forest, "missing") is deep_forest
    loading = forest_ops.set_loading(deep_forest, "C", True)
    assert forest_ops.toggle_expanded(loading, "C") is loading


def test_toggle_flips_known_empty_children():
    f = forest(folder("A", expanded=False))
    assert forest_ops.toggle_expanded(f, "A").get("A").is_expanded is True


def test_update_copies_only_the_path(deep_forest):
    updated = forest_ops.set_loading(deep_forest, "D", True)
    assert updated.get("D").is_loading
    assert not deep_forest.get("D").is_loading
    # Untouched subtrees are shared
    assert updated.get("C") is deep_forest.get("C")
    assert updated.get("F") is deep_forest.get("F")
    assert updated.get("A") is not deep_forest.get("A")


def test_set_expanded_ignores_unknown_children(deep_forest):
    assert forest_ops.set_expanded(deep_forest, "D", True) is deep_forest
    collapsed = forest_ops.set_expanded(deep_forest, "A", False)
    assert ids(flatten(collapsed)) == ["A", "F"]


# --------------------------------------------------------------- set_children

def test_set_children_installs_and_expands():
    f = forest(folder("A", folder("X", unknown=True, loading=True)))
    fetched = [TreeNode(id="x1", kind="folder", fields={"name": "x1"}), TreeNode(id="x2", kind="folder")]
    updated = forest_ops.set_children(f, "X", fetched)
    x = updated.get("X")
    assert [c.id for c in x.children] == ["x1", "x2"]
    assert x.is_expanded and not x.is_loading
    assert all(c.parent_id == "X" for c in x.children)
    assert ids(flatten(updated)) == ["A", "X", "x1", "x2"]


def test_set_children_drops_duplicate_ids():
    f = forest(folder("A", folder("X", unknown=True), folder("dup")))
    fetched = [TreeNode(id="dup", kind="folder"), TreeNode(id="fresh", kind="folder")]
    updated = forest_ops.set_children(f, "X", fetched)
    assert child_ids(updated, "X") == ["fresh"]
    _assert_parent_links(updated)


# ------------------------------------------------------------- remove/insert

def test_remove_cascades_to_descendants(deep_forest):
    total = len(deep_forest)
    subtree_size = len(forest_ops.subtree_ids(deep_forest.get("B")))
    updated, subtree = forest_ops.remove(deep_forest, "B")
    assert subtree.id == "B"
    assert len(updated) == total - subtree_size
    removed = {"B", "D", "e"}
    for node in updated.iter_nodes():
        assert node.id not in removed
        assert node.parent_id not in removed
    _assert_parent_links(updated)


def test_remove_missing_returns_same_forest(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "missing")
    assert subtree is None
    assert updated is deep_forest


def test_remove_root(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "A")
    assert subtree.id == "A"
    assert child_ids(updated, None) == ["F"]


def test_insert_at_index_and_append(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "C")
    at_front = forest_ops.insert(updated, subtree, "B", 0)
    assert child_ids(at_front, "B") == ["C", "D", "e"]
    appended = forest_ops.insert(updated, subtree, "B", None)
    assert child_ids(appended, "B") == ["D", "e", "C"]
    out_of_range = forest_ops.insert(updated, subtree, "B", 99)
    assert child_ids(out_of_range, "B") == ["D", "e", "C"]
    assert appended.get("C").parent_id == "B"
    _assert_parent_links(appended)


def test_insert_expands_target_parent(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "C")
    result = forest_ops.insert(updated, subtree, "F", None)
    assert result.get("F").is_expanded
    assert ids(flatten(result))[-2:] == ["F", "C"]


def test_insert_as_root():
    f = forest(folder("A", folder("B")), folder("Z"))
    updated, subtree = forest_ops.remove(f, "B")
    result = forest_ops.insert(updated, subtree, None, 1)
    assert child_ids(result, None) == ["A", "B", "Z"]
    assert result.get("B").parent_id is None


def test_insert_rejected_for_leaf_absent_or_duplicate(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "C")
    assert forest_ops.insert(updated, subtree, "e", None) is updated
    assert forest_ops.insert(updated, subtree, "missing", None) is updated
    assert forest_ops.insert(deep_forest, deep_forest.get("C"), "F", None) is deep_forest


def test_insert_under_unknown_children_makes_them_known(deep_forest):
    updated, subtree = forest_ops.remove(deep_forest, "C")
    result = forest_ops.insert(updated, subtree, "D", None)
    assert child_ids(result, "D") == ["C"]
    assert result.get("D").is_expanded


@pytest.mark.parametrize("moved,target", [("e", "C"), ("C", "D"), ("B", "F"), ("F", "e")])
def test_legal_moves_preserve_acyclicity(deep_forest, moved, target):
    if forest_ops.is_descendant_or_self(deep_forest, moved, target):
        pytest.skip("illegal move")
    updated, subtree = forest_ops.remove(deep_forest, moved)
    result = forest_ops.insert(updated, subtree, target, None)
    if result is updated:
        # Leaf targets reject the insert; the subtree is simply detached
        assert deep_forest.get(target).is_leaf
        return
    assert not forest_ops.is_descendant_or_self(result, moved, target)
    assert len(result) == len(deep_forest)
    _assert_parent_links(result)


# ------------------------------------------------------- add / expand all / stats

def test_add_node_creates_child_with_generated_id(deep_forest):
    updated, new_id = forest_ops.add_node(deep_forest, "C", {"name": "new"})
    assert new_id is not None and len(new_id) == 12
    node = updated.get(new_id)
    assert node.parent_id == "C" and node.children == ()
    assert child_ids(updated, "C") == [new_id]


def test_add_node_rejects_leaf_parent(deep_forest):
    updated, new_id = forest_ops.add_node(deep_forest, "e", {"name": "x"})
    assert new_id is None and updated is deep_forest


def test_add_node_as_root_and_leaf(deep_forest):
    updated, new_id = forest_ops.add_node(deep_forest, None, {"name": "x"}, is_leaf=True, node_id="new-root")
    assert new_id == "new-root"
    assert child_ids(updated, None) == ["A", "F", "new-root"]
    assert updated.get("new-root").is_leaf


def test_expand_all_never_touches_unknown_children(deep_forest):
    collapsed = forest_ops.collapse_all(deep_forest)
    assert ids(flatten(collapsed)) == ["A", "F"]
    expanded = forest_ops.expand_all(collapsed)
    assert ids(flatten(expanded)) == ["A", "B", "D", "e", "C", "F"]
    assert expanded.get("D").children is None
    assert not expanded.get("D").is_expanded


def test_expand_all_is_identity_when_nothing_changes():
    f = forest(folder("A", folder("B", expanded=False)))
    assert forest_ops.expand_all(f) is f


def test_compute_stats(deep_forest):
    loading = forest_ops.set_loading(deep_forest, "D", True)
    stats = forest_ops.compute_stats([loading, forest(leaf("z"), key="other")])
    assert stats.total_nodes == 7
    assert stats.leaves == 2
    assert stats.containers == 5
    assert stats.loading == 1
    # A, B, C are expanded with known children; F is collapsed, D unknown
    assert stats.expanded == 3


def test_deep_chain_does_not_hit_recursion_limit():
    depth = 5000
    node = TreeNode(id=f"n{depth}", kind="folder", children=())
    for i in range(depth - 1, -1, -1):
        node = TreeNode(id=f"n{i}", kind="folder", children=(node,), is_expanded=True)
    f = Forest("deep", "folder", (node,))
    assert len(flatten(f)) == depth + 1
    assert forest_ops.is_descendant_or_self(f, "n0", f"n{depth}")
    updated, subtree = forest_ops.remove(f, f"n{depth}")
    assert subtree.id == f"n{depth}"
    assert len(updated) == depth
    assert len(forest_ops.collapse_all(f).roots) == 1


# ------------------------------------------------------------ slot map upkeep

def _assert_structure_fresh(f):
    assert dict(f.structure) == dict(Forest(f.key, f.kind, f.roots).structure)


def test_expand_state_updates_share_the_slot_map(deep_forest):
    structure = deep_forest.structure
    toggled = forest_ops.toggle_expanded(deep_forest, "B")
    assert toggled.structure is structure
    loading = forest_ops.set_loading(toggled, "D", True)
    assert loading.structure is structure
    assert forest_ops.collapse_all(loading).structure is structure
    assert forest_ops.expand_all(loading).structure is structure


def test_structural_edits_patch_the_slot_map(deep_forest):
    removed, subtree = forest_ops.remove(deep_forest, "B")
    _assert_structure_fresh(removed)
    assert removed.structure["C"].position == 0
    assert "D" not in removed and "e" not in removed

    moved = forest_ops.insert(removed, subtree, "C", 0)
    _assert_structure_fresh(moved)
    assert moved.index["e"].depth == 3

    rooted = forest_ops.insert(moved, folder("R", leaf("r1")), None, 0)
    _assert_structure_fresh(rooted)
    assert rooted.structure["A"].position == 1
    assert rooted.structure["F"].position == 2

    loaded = forest_ops.set_children(rooted, "D", [folder("x", leaf("x1")), leaf("y")])
    _assert_structure_fresh(loaded)
    reloaded = forest_ops.set_children(loaded, "D", [leaf("x1"), leaf("z")])
    _assert_structure_fresh(reloaded)
    assert child_ids(reloaded, "D") == ["x1", "z"]
    assert reloaded.index["x1"].parent_id == "D"
    assert "x" not in reloaded and "y" not in reloaded


def test_wide_forest_edits_reuse_the_slot_map():
    width = 100_000
    roots = [folder("top", leaf("t1"))] + [leaf(f"s{i}") for i in range(width)]
    wide = Forest("wide", "folder", tuple(roots))
    structure = wide.structure

    toggled = forest_ops.toggle_expanded(wide, "top")
    assert toggled.structure is structure
    assert forest_ops.is_descendant_or_self(toggled, "top", "t1")
    assert not forest_ops.is_descendant_or_self(toggled, "top", f"s{width - 1}")

    removed, _ = forest_ops.remove(toggled, "s0")
    assert removed.structure is not structure
    assert removed.structure[f"s{width - 1}"].position == width - 1
    assert len(removed) == len(wide) - 1
    assert toggled.structure[f"s{width - 1}"].position == width
