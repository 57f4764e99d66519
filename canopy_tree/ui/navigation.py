from __future__ import annotations

"""Keyboard navigation over the flattened rows.

:func:`navigate` is a pure function of one key event, the current rows, the
selected id and whether a drag gesture is in progress. It does not touch the
tree; it returns a :class:`NavigationOutcome` describing what the owner
should do (select another id, toggle or expand a node) and which row index
to scroll into view.

Key table
---------
- ArrowDown: select the next row.
- ArrowUp: select the previous row.
- ArrowRight: expand a collapsed node that may have children (lazy load if
  unknown); on an expanded node with visible children, select the first child.
- ArrowLeft: collapse an expanded node; otherwise select the parent row.
- Enter / Space: toggle a node that may have children.

Recognised keys are always consumed, even when nothing changes.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from canopy_tree.core.flatten import row_index_of
from canopy_tree.core.models import FlatRow

__all__ = ["KeyEvent", "KeyEventLike", "NavigationOutcome", "NAVIGATION_KEYS", "navigate", "normalize_key"]


ARROW_UP = "ArrowUp"
ARROW_DOWN = "ArrowDown"
ARROW_LEFT = "ArrowLeft"
ARROW_RIGHT = "ArrowRight"
ENTER = "Enter"
SPACE = "Space"

NAVIGATION_KEYS = frozenset({ARROW_UP, ARROW_DOWN, ARROW_LEFT, ARROW_RIGHT, ENTER, SPACE})

# Tk keysyms and DOM-style aliases
_ALIASES = {
    "Up": ARROW_UP,
    "Down": ARROW_DOWN,
    "Left": ARROW_LEFT,
    "Right": ARROW_RIGHT,
    "Return": ENTER,
    "KP_Enter": ENTER,
    "space": SPACE,
    " ": SPACE,
    "Spacebar": SPACE,
}


class KeyEventLike(Protocol):
    key: str

    def prevent_default(self) -> None:
        ...


@dataclass
class KeyEvent:
    """Minimal key event: a key name plus a consumable default action."""

    key: str
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


@dataclass(frozen=True)
class NavigationOutcome:
    """What a key press asks the owner of the tree state to do.

    Attributes
    ----------
    consumed
        The key is a navigation key; its default action was prevented.
    select_id
        New selection, when it changes.
    toggle_id
        Node whose expand state must be toggled (lazily loading unknown children).
    expand_id
        Node that must be expanded (lazily loading unknown children).
    collapse_id
        Node that must be collapsed.
    scroll_to
        Row index to scroll into view, set on every state change.
    """

    consumed: bool = False
    select_id: Optional[str] = None
    toggle_id: Optional[str] = None
    expand_id: Optional[str] = None
    collapse_id: Optional[str] = None
    scroll_to: Optional[int] = None

    @property
    def changed(self) -> bool:
        return any(v is not None for v in (self.select_id, self.toggle_id, self.expand_id, self.collapse_id))


def normalize_key(key: str) -> Optional[str]:
    """Map a raw key name to one of :data:`NAVIGATION_KEYS`, or None."""
    if key in NAVIGATION_KEYS:
        return key
    return _ALIASES.get(key)


def navigate(
    event: KeyEventLike,
    rows: Sequence[FlatRow],
    selected_id: Optional[str],
    drag_active: bool = False,
) -> NavigationOutcome:
    """Translate a key press into a :class:`NavigationOutcome`."""
    key = normalize_key(getattr(event, "key", ""))
    if key is None:
        return NavigationOutcome()
    event.prevent_default()

    consumed = NavigationOutcome(consumed=True)
    if drag_active or selected_id is None:
        return consumed
    index = row_index_of(rows, selected_id)
    if index < 0:
        return consumed

    row = rows[index]
    node = row.node

    if key == ARROW_DOWN:
        if index < len(rows) - 1:
            return NavigationOutcome(True, select_id=rows[index + 1].node.id, scroll_to=index + 1)
        return consumed

    if key == ARROW_UP:
        if index > 0:
            return NavigationOutcome(True, select_id=rows[index - 1].node.id, scroll_to=index - 1)
        return consumed

    if key == ARROW_RIGHT:
        if node.is_expanded and node.has_children:
            child_index = index + 1
            if child_index < len(rows) and rows[child_index].depth > row.depth:
                return NavigationOutcome(True, select_id=rows[child_index].node.id, scroll_to=child_index)
            return consumed
        if not node.is_expanded and node.may_have_children and not node.is_loading:
            return NavigationOutcome(True, expand_id=node.id, scroll_to=index)
        return consumed

    if key == ARROW_LEFT:
        if node.is_expanded and node.children is not None:
            return NavigationOutcome(True, collapse_id=node.id, scroll_to=index)
        if row.depth > 0:
            parent_index = _parent_row_index(rows, index)
            if parent_index >= 0:
                return NavigationOutcome(True, select_id=rows[parent_index].node.id, scroll_to=parent_index)
        return consumed

    # Enter / Space
    if node.may_have_children and not node.is_loading:
        return NavigationOutcome(True, toggle_id=node.id, scroll_to=index)
    return consumed


def _parent_row_index(rows: Sequence[FlatRow], index: int) -> int:
    """Closest preceding row one level shallower than ``rows[index]``."""
    depth = rows[index].depth
    for i in range(index - 1, -1, -1):
        if rows[i].depth < depth:
            return i
    return -1
