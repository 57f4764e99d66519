import pytest

from canopy_tree.core.models import DropTarget, DropZone, TreeNode
from canopy_tree.core.services import LazyLoadService, MoveService, UndoService
from canopy_tree.ui.controllers.tree_controller import TreeController
from canopy_tree.ui.navigation import KeyEvent

from tests.tree_factory import child_ids, context, folder, forest, ids, leaf


def _fetch(node_id):
    return [TreeNode(id=f"{node_id}-{i}", kind="folder", fields={"name": f"n{i}"}) for i in range(3)]


def _seed():
    return context(
        forest(folder("A", folder("B"), folder("C"), leaf("f")), folder("X", unknown=True)),
        selected="A",
    )


@pytest.fixture
def controller(deferred_runner):
    return TreeController(
        _seed(),
        MoveService(),
        LazyLoadService(_fetch, run_in_thread=deferred_runner),
        UndoService(),
        seed_factory=_seed,
        preview_limit=2,
    )


@pytest.fixture
def notified(controller):
    calls = {"rows": [], "scroll": []}
    controller.on_rows_changed(lambda rows: calls["rows"].append(ids(rows)))
    controller.on_scroll_request(calls["scroll"].append)
    return calls


def test_initial_rows_and_no_history(controller):
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]
    assert controller.selected_index() == 0
    assert not controller.can_undo() and not controller.can_redo()


def test_toggle_known_children(controller, notified):
    assert controller.toggle("A")
    assert ids(controller.rows) == ["A", "X"]
    assert notified["rows"] == [["A", "X"]]
    assert controller.toggle("A")
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]
    assert not controller.toggle("f")
    # Expand state is not part of the history
    assert not controller.can_undo()


def test_toggle_unknown_children_loads_lazily(controller, deferred_runner, notified):
    assert controller.toggle("X")
    assert controller.context.find_node("X").is_loading
    # A second click while loading does nothing
    assert not controller.toggle("X")
    deferred_runner.flush()
    assert ids(controller.rows)[-4:] == ["X", "X-0", "X-1", "X-2"]
    # Loading started, then finished: one refresh each
    assert len(notified["rows"]) == 2


def test_arrow_down_selects_and_requests_one_scroll(controller, notified):
    event = KeyEvent("Down")
    outcome = controller.handle_key(event)
    assert outcome.select_id == "B"
    assert controller.selected_id == "B"
    assert notified["scroll"] == [1]
    assert event.default_prevented


def test_keys_are_ignored_while_dragging(controller, notified):
    controller.handle_drag_start("B")
    outcome = controller.handle_key(KeyEvent("ArrowDown"))
    assert outcome.consumed and not outcome.changed
    assert controller.selected_id == "A"
    assert notified["scroll"] == []


def test_arrow_left_and_right_drive_expand_state(controller):
    controller.handle_key(KeyEvent("ArrowLeft"))
    assert not controller.context.find_node("A").is_expanded
    controller.handle_key(KeyEvent("ArrowRight"))
    assert controller.context.find_node("A").is_expanded


def test_enter_on_unknown_node_starts_load(controller, deferred_runner):
    controller.select("X")
    controller.handle_key(KeyEvent("Return"))
    assert controller.lazy_loader.is_in_flight("X")
    deferred_runner.flush()
    assert child_ids(controller.context.forests["main"], "X") == ["X-0", "X-1", "X-2"]


def test_drag_move_is_recorded_and_undoable(controller):
    assert controller.handle_drag_start("B")
    assert controller.drag_active
    preview, truncated = controller.drag_preview()
    assert ids(preview) == ["B"] and truncated is False

    result = controller.handle_drag_end("B", DropTarget(DropZone.ONTO, "C"))
    assert result.success
    assert not controller.drag_active
    assert ids(controller.rows) == ["A", "C", "B", "f", "X"]
    assert controller.selected_id == "B"

    assert controller.can_undo()
    assert controller.undo()
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]
    assert controller.selected_id == "A"
    assert controller.redo()
    assert child_ids(controller.context.forests["main"], "C") == ["B"]


def test_drag_preview_is_truncated(controller):
    controller.handle_drag_start("A")
    preview, truncated = controller.drag_preview()
    assert ids(preview) == ["A", "B"]
    assert truncated is True


def test_rejected_drop_leaves_no_history(controller):
    controller.handle_drag_start("A")
    result = controller.handle_drag_end("A", DropTarget(DropZone.ONTO, "B"))
    assert not result.success
    assert not controller.drag_active
    assert not controller.can_undo()


def test_cancelled_drag(controller, notified):
    controller.handle_drag_start("B")
    result = controller.handle_drag_end("B", None)
    assert not result.success
    assert controller.context.drag_source_id is None
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]


def test_drop_token(controller):
    assert controller.handle_drop_token("f", "drop:before:B").success
    assert child_ids(controller.context.forests["main"], "A") == ["f", "B", "C"]
    assert not controller.handle_drop_token("B", "garbage").success


def test_drag_start_requires_visible_row(controller):
    controller.toggle("A")
    assert not controller.handle_drag_start("B")
    assert not controller.drag_active


def test_add_and_undo(controller):
    result = controller.handle_add("C", {"name": "New folder"})
    assert result.success
    new_id = result.details["node_id"]
    assert child_ids(controller.context.forests["main"], "C") == [new_id]
    assert new_id in ids(controller.rows)
    assert controller.undo()
    assert not controller.context.contains(new_id)


def test_add_root_and_rejections(controller):
    assert controller.handle_add(None, {"name": "Top"}, forest_key="main").success
    assert len(controller.context.forests["main"].roots) == 3
    assert not controller.handle_add("ghost", {"name": "x"}).success
    assert not controller.handle_add("f", {"name": "x"}).success
    assert not controller.handle_add(None, {"name": "x"}, forest_key="nope").success


def test_add_to_loading_parent_is_rejected(controller):
    controller.toggle("X")
    result = controller.handle_add("X", {"name": "x"})
    assert not result.success


def test_delete_heals_selection(controller):
    controller.select("B")
    result = controller.handle_delete("A")
    assert result.success
    assert result.details["removed"] == 4
    assert controller.selected_id is None
    assert ids(controller.rows) == ["X"]
    assert not controller.handle_delete("A").success


def test_fetch_landing_after_undo_is_merged(controller, deferred_runner):
    controller.handle_delete("B")
    controller.toggle("X")
    assert controller.undo()
    # The baseline had X unloaded; the in-flight fetch still lands afterwards
    deferred_runner.flush()
    assert controller.context.find_node("X").children is not None
    assert not controller.context.find_node("X").is_loading


def test_expand_and_collapse_all(controller):
    controller.collapse_all()
    assert ids(controller.rows) == ["A", "X"]
    controller.expand_all()
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]
    # Unknown children are not fetched
    assert not controller.lazy_loader.in_flight


def test_stats(controller):
    stats = controller.get_stats()
    assert stats.total_nodes == 5
    assert stats.leaves == 1
    assert stats.loading == 0


def test_reset_rebuilds_seed_and_clears_history(controller):
    controller.handle_delete("B")
    assert controller.reset()
    assert ids(controller.rows) == ["A", "B", "C", "f", "X"]
    assert controller.selected_id == "A"
    assert not controller.can_undo()


def test_listener_errors_are_contained(controller):
    def boom(_rows):
        raise RuntimeError("listener failure")

    controller.on_rows_changed(boom)
    assert controller.select("C")
    assert controller.selected_id == "C"


def test_create_wires_settings(inline_runner):
    ctl = TreeController.create(
        _seed(),
        _fetch,
        run_in_thread=inline_runner,
        settings={"undo": {"max_history": 5}, "drag": {"preview_limit": 3}},
    )
    assert ctl.preview_limit == 3
    assert ctl.undo_service.max_history == 5
    ctl.toggle("X")
    assert child_ids(ctl.context.forests["main"], "X") == ["X-0", "X-1", "X-2"]


def test_selection_changes_do_not_reflatten(controller, notified):
    before = controller.rows
    assert controller.select("C")
    assert controller.rows is before
    controller.handle_key(KeyEvent("Down"))
    assert controller.selected_id == "f"
    assert controller.rows is before
    controller.handle_drag_start("B")
    controller.handle_drag_end("B", None)
    assert controller.rows is before
    assert len(notified["rows"]) == 4


def test_rejected_key_action_requests_no_scroll(controller, deferred_runner, notified):
    controller.handle_delete("B")
    controller.toggle("X")
    assert controller.undo()
    # X is back to unknown children while its fetch is still in flight
    assert not controller.context.find_node("X").is_loading
    controller.select("X")
    notified["scroll"].clear()

    outcome = controller.handle_key(KeyEvent("Return"))
    assert outcome.toggle_id == "X"
    outcome = controller.handle_key(KeyEvent("ArrowRight"))
    assert outcome.expand_id == "X"
    assert notified["scroll"] == []

    deferred_runner.flush()
    controller.handle_key(KeyEvent("ArrowLeft"))
    assert notified["scroll"] == [4]
