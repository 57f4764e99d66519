from __future__ import annotations

"""On-demand loading of children for nodes whose children are unknown.

Per node the loader walks ``unloaded -> loading -> loaded``. A fetch is
dispatched through an injected ``run_in_thread(work_fn, done_fn)`` callable
(the Tk front-end runs ``work_fn`` in a daemon thread and delivers the result
through ``after(0, ...)``). ``done_fn`` therefore always runs on the UI
thread, which is the only place the context is written.

When the fetch resolves, the node is looked up again by id across every
forest: if it has been deleted meanwhile, the result is discarded. Fetch
errors put the node back to ``unloaded``; there is no automatic retry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Set

from canopy_tree.core import forest_ops
from canopy_tree.core.models import TreeContext, TreeNode
from canopy_tree.core.services.move_service import OperationResult

__all__ = ["LazyLoadService", "FetchOutcome"]

logger = logging.getLogger(__name__)


FetchChildren = Callable[[str], Iterable[TreeNode]]
RunInThread = Callable[[Callable[[], object], Optional[Callable[[object], None]]], None]


def _run_inline(work_fn, done_fn=None) -> None:
    result = work_fn()
    if callable(done_fn):
        done_fn(result)


@dataclass(frozen=True)
class FetchOutcome:
    """What a background fetch produced: children, or the error raised."""

    node_id: str
    children: Optional[List[TreeNode]] = None
    error: Optional[BaseException] = None


class LazyLoadService:
    """Dispatch child fetches and merge their results into a context.

    Parameters
    ----------
    fetch_children : Callable[[str], Iterable[TreeNode]]
        Data source. Called off the UI thread; may raise.
    run_in_thread : Callable, optional
        ``run_in_thread(work_fn, done_fn)``; defaults to running inline,
        which is what tests use.
    on_change : Callable[[str], None], optional
        Listener invoked with the node id after each state change (loading
        started, merged, reverted) so the owner can re-flatten and redraw.
        More can be added with :meth:`add_listener`.
    """

    def __init__(
        self,
        fetch_children: FetchChildren,
        *,
        run_in_thread: Optional[RunInThread] = None,
        on_change: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._fetch_children = fetch_children
        self._run_in_thread = run_in_thread or _run_inline
        self._listeners: List[Callable[[str], None]] = [on_change] if on_change else []
        self._in_flight: Set[str] = set()

    # -------------------------------------------------------------- Public API

    def add_listener(self, callback: Callable[[str], None]) -> None:
        self._listeners.append(callback)

    def is_in_flight(self, node_id: str) -> bool:
        return node_id in self._in_flight

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    def request_children(self, context: TreeContext, node_id: str) -> OperationResult:
        """Start loading the children of ``node_id``.

        Returns an unsuccessful result (and dispatches nothing) when the node
        is absent, is a leaf, already has known children, or is already
        loading.
        """
        forest = context.forest_of(node_id)
        node = forest.get(node_id) if forest is not None else None
        if node is None:
            return OperationResult(False, "Node not found.", {"node_id": node_id})
        if node.is_loading or node_id in self._in_flight:
            logger.debug("Lazy load ignored (already loading) node=%s", node_id)
            return OperationResult(False, "Already loading.", {"node_id": node_id})
        if node.is_leaf or node.children is not None:
            return OperationResult(False, "Children already known.", {"node_id": node_id})

        context.replace_forests(forest_ops.set_loading(forest, node_id, True))
        self._in_flight.add(node_id)
        logger.info("Lazy load: fetch node=%s", node_id)
        self._notify(node_id)

        fetch = self._fetch_children

        def _work():
            try:
                return FetchOutcome(node_id, children=list(fetch(node_id)))
            except Exception as ex:
                return FetchOutcome(node_id, error=ex)

        def _done(result):
            self._complete(context, node_id, result)

        self._run_in_thread(_work, _done)
        return OperationResult(True, "Loading children.", {"node_id": node_id})

    def reconcile(self, context: TreeContext) -> int:
        """Clear ``is_loading`` on nodes no in-flight fetch stands behind.

        Undo/redo can restore a snapshot taken while a fetch was running;
        without this such nodes would show a spinner forever.

        Returns
        -------
        int
            Number of nodes reset.
        """
        updated = []
        reset = 0
        for forest in context.forests.values():
            current = forest
            for node in forest.iter_nodes():
                if node.is_loading and node.id not in self._in_flight:
                    current = forest_ops.set_loading(current, node.id, False)
                    reset += 1
            if current is not forest:
                updated.append(current)
        if updated:
            context.replace_forests(*updated)
            logger.debug("Lazy load: reconciled %d orphaned loading flag(s)", reset)
        return reset

    def clear(self) -> None:
        """Forget in-flight fetches; late results are then treated as stale."""
        self._in_flight.clear()

    # --------------------------------------------------------------- Internals

    def _complete(self, context: TreeContext, node_id: str, result: Any) -> None:
        if node_id not in self._in_flight:
            logger.debug("Lazy load stale (cleared): node=%s", node_id)
            return
        self._in_flight.discard(node_id)

        forest = context.forest_of(node_id)
        if forest is None:
            logger.debug("Lazy load stale (node removed): node=%s", node_id)
            return

        if not isinstance(result, FetchOutcome) or result.error is not None:
            error = getattr(result, "error", None)
            logger.warning(
                "Lazy load FAIL: node=%s error=%s",
                node_id,
                error,
                exc_info=(type(error), error, error.__traceback__) if error is not None else None,
            )
            context.replace_forests(forest_ops.set_loading(forest, node_id, False))
            self._notify(node_id)
            return

        node = forest.get(node_id)
        if node is not None and node.children is not None:
            # Children became known meanwhile (restored by undo/redo); keep them.
            context.replace_forests(forest_ops.set_loading(forest, node_id, False))
            logger.debug("Lazy load discarded (children already known): node=%s", node_id)
        else:
            context.replace_forests(forest_ops.set_children(forest, node_id, result.children or []))
            logger.info("Lazy load OK: node=%s children=%d", node_id, len(result.children or []))
        self._notify(node_id)

    def _notify(self, node_id: str) -> None:
        for callback in list(self._listeners):
            try:
                callback(node_id)
            except Exception:
                logger.error("Lazy load change listener failed for node=%s", node_id, exc_info=True)
