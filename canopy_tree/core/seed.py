from __future__ import annotations

"""Demo data: the initial forests and a simulated lazy data source.

The tree state is never persisted; the reference front-end re-derives it
from :func:`build_demo_context` on start-up and on reset. Sizes come from the
``demo`` section of ``tree_settings.yml``.
"""

import logging
import random
import time
from typing import Any, Callable, List, Mapping, Optional

from canopy_tree.core.models import BOOK_KIND, FOLDER_KIND, Forest, TreeContext, TreeNode

__all__ = [
    "generate_folders",
    "build_folder_forest",
    "build_project_forest",
    "build_book_forest",
    "build_demo_context",
    "MockChildrenSource",
]

logger = logging.getLogger(__name__)


FOLDERS_FOREST = "folders"
PROJECT_FOREST = "project"
BOOKS_FOREST = "books"


def generate_folders(count: int, parent_id: str) -> List[TreeNode]:
    """Return ``count`` folders with unknown children under ``parent_id``."""
    return [
        TreeNode(
            id=f"{parent_id}-auto-{i}",
            kind=FOLDER_KIND.name,
            fields={"name": f"AutoFolder-{i}"},
            parent_id=parent_id,
        )
        for i in range(1, int(count) + 1)
    ]


def _root(node_id: str, name: str, children: List[TreeNode]) -> TreeNode:
    return TreeNode(
        id=node_id,
        kind=FOLDER_KIND.name,
        fields={"name": name},
        children=tuple(children),
    )


def build_folder_forest(folder_children: int = 5, large_children: int = 10000) -> Forest:
    roots = [
        _root("root-1", "Documents", generate_folders(folder_children, "root-1")),
        _root("root-2", "Pictures", generate_folders(folder_children, "root-2")),
        _root("root-3", "Music", generate_folders(folder_children, "root-3")),
        _root("root-4", "Ex", generate_folders(large_children, "root-4")),
    ]
    return Forest(FOLDERS_FOREST, FOLDER_KIND.name, tuple(roots))


def build_project_forest() -> Forest:
    """A small fully known project tree with files as leaves."""
    def folder(node_id, name, parent_id, children, expanded=False):
        return TreeNode(
            id=node_id,
            kind=FOLDER_KIND.name,
            fields={"name": name},
            parent_id=parent_id,
            children=tuple(children),
            is_expanded=expanded,
        )

    def file(node_id, name, parent_id):
        return TreeNode(id=node_id, kind=FOLDER_KIND.name, fields={"name": name}, parent_id=parent_id, is_leaf=True)

    components = folder("p-5", "components", "p-2", [
        file("p-10", "Header.tsx", "p-5"),
        file("p-11", "TreeView.tsx", "p-5"),
    ])
    hooks = folder("p-6", "hooks", "p-2", [file("p-12", "useTree.ts", "p-6")])
    src = folder("p-2", "src", "p-1", [components, hooks, file("p-7", "App.tsx", "p-2")], expanded=True)
    public = folder("p-3", "public", "p-1", [
        file("p-8", "index.html", "p-3"),
        file("p-9", "favicon.ico", "p-3"),
    ])
    root = folder("p-1", "Project root", None, [src, public, file("p-4", "README.md", "p-1")], expanded=True)
    return Forest(PROJECT_FOREST, FOLDER_KIND.name, (root,))


def build_book_forest() -> Forest:
    """A shelf hierarchy of the book kind; books are leaves."""
    def shelf(node_id, title, parent_id, children):
        return TreeNode(
            id=node_id,
            kind=BOOK_KIND.name,
            fields={"title": title},
            parent_id=parent_id,
            children=tuple(children),
        )

    def book(node_id, title, author, parent_id):
        return TreeNode(
            id=node_id,
            kind=BOOK_KIND.name,
            fields={"title": title, "author": author},
            parent_id=parent_id,
            is_leaf=True,
        )

    fiction = shelf("b-2", "Fiction", "b-1", [
        book("b-10", "The Trial", "Franz Kafka", "b-2"),
        book("b-11", "Invisible Cities", "Italo Calvino", "b-2"),
    ])
    science = shelf("b-3", "Science", "b-1", [
        book("b-12", "The Selfish Gene", "Richard Dawkins", "b-3"),
    ])
    library = shelf("b-1", "Library", None, [fiction, science])
    # Unknown children: fetched on first expand
    archive = TreeNode(id="b-4", kind=BOOK_KIND.name, fields={"title": "Archive"})
    return Forest(BOOKS_FOREST, BOOK_KIND.name, (library, archive))


def build_demo_context(settings: Optional[Mapping[str, Any]] = None) -> TreeContext:
    """Build the initial context from the ``demo`` settings section."""
    demo = dict(settings or {})
    context = TreeContext.from_forests([
        build_folder_forest(
            folder_children=int(demo.get("folder_children", 5)),
            large_children=int(demo.get("large_children", 10000)),
        ),
        build_project_forest(),
        build_book_forest(),
    ])
    context.selected_id = "root-1"
    return context


class MockChildrenSource:
    """Simulated remote data source for lazy children.

    Each call sleeps for ``delay_ms`` then returns between ``min_children``
    and ``max_children`` nodes with ids ``<parent_id>-<n>``. Must be called
    off the UI thread since it blocks.

    Parameters
    ----------
    context_getter : Callable[[], TreeContext]
        Used to determine the kind of the parent node.
    delay_ms : int
        Simulated latency.
    rng : random.Random, optional
        Randomness source; pass a seeded instance for reproducible trees.
    """

    def __init__(
        self,
        context_getter: Callable[[], TreeContext],
        *,
        delay_ms: int = 500,
        min_children: int = 2,
        max_children: int = 6,
        leaf_ratio: float = 0.3,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._context_getter = context_getter
        self._delay = max(0, int(delay_ms)) / 1000.0
        self._min = max(0, int(min_children))
        self._max = max(self._min, int(max_children))
        self._leaf_ratio = float(leaf_ratio)
        self._rng = rng or random.Random()
        self._sleep = sleep

    def __call__(self, parent_id: str) -> List[TreeNode]:
        kind = FOLDER_KIND.name
        context = self._context_getter()
        parent = context.find_node(parent_id) if context is not None else None
        if parent is not None:
            kind = parent.kind
        if self._delay:
            self._sleep(self._delay)
        count = self._rng.randint(self._min, self._max)
        logger.debug("Mock fetch: parent=%s kind=%s count=%d", parent_id, kind, count)
        return [self._make(parent_id, kind, i) for i in range(count)]

    def _make(self, parent_id: str, kind: str, i: int) -> TreeNode:
        is_leaf = self._rng.random() < self._leaf_ratio
        node_id = f"{parent_id}-{i}"
        if kind == BOOK_KIND.name:
            if is_leaf:
                fields = {"title": f"Volume {parent_id}-{i}", "author": "Anonymous"}
            else:
                fields = {"title": f"Shelf {parent_id}-{i}"}
        else:
            fields = {"name": f"{'File' if is_leaf else 'Folder'} {parent_id}-{i}"}
        return TreeNode(id=node_id, kind=kind, fields=fields, parent_id=parent_id, is_leaf=is_leaf)
