"""Shared test configuration and fixtures for Canopy Tree.

Trees are built with the helpers in ``tests/tree_factory.py``; fixtures here
cover the recurring shapes and the inline runner used instead of threads.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from canopy_tree.config import ConfigManager
from tests.tree_factory import context, folder, forest, leaf

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture
def abc_forest():
    """Root A (expanded) with children B and C, both known-empty folders."""
    return forest(folder("A", folder("B"), folder("C")))


@pytest.fixture
def abc_context(abc_forest):
    return context(abc_forest, selected="A")


@pytest.fixture
def deep_forest():
    """A/(B/(D, e), C), F; D has unknown children and e is a leaf."""
    return forest(
        folder("A", folder("B", folder("D", unknown=True), leaf("e")), folder("C")),
        folder("F", expanded=False),
    )


@pytest.fixture
def inline_runner():
    """run_in_thread replacement executing work and done synchronously."""
    return lambda work, done=None: done(work()) if done else work()


@pytest.fixture
def deferred_runner():
    """run_in_thread replacement that queues jobs until ``flush()`` is called."""
    class DeferredRunner:
        def __init__(self):
            self.jobs = []

        def __call__(self, work, done=None):
            self.jobs.append((work, done))

        def flush(self):
            jobs, self.jobs = self.jobs, []
            for work, done in jobs:
                result = work()
                if done is not None:
                    done(result)

    return DeferredRunner()


@pytest.fixture(autouse=True)
def reset_singletons(tmp_path, monkeypatch):
    """Point user config at an empty temp dir and reset the config singleton."""
    monkeypatch.setenv("CANOPY_CONFIG_DIR", str(tmp_path / "user_config"))
    ConfigManager.reset()
    yield
    ConfigManager.reset()
