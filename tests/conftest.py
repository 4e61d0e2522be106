"""Shared test fixtures."""

import pytest

from opcda_next.core.connection import new_connection
from opcda_next.core.tree import Leaf, Tree
from opcda_next.drivers.simulated_driver import SimulatedDriver

SERVER = "Graybox.Simulator"


@pytest.fixture
def sample_tree() -> Tree:
    """root with one leaf, then branches ``options`` and ``numeric``."""
    root = Tree("root", leaves=[Leaf("bandwidth", "bandwidth")])
    options = root.add_branch("options")
    options.leaves.extend([
        Leaf("frequency", "options.frequency"),
        Leaf("amplitude", "options.amplitude"),
    ])
    numeric = root.add_branch("numeric")
    numeric.leaves.extend([
        Leaf("sin", "numeric.sin"),
        Leaf("cos", "numeric.cos"),
        Leaf("tan", "numeric.tan"),
    ])
    return root


@pytest.fixture
def driver() -> SimulatedDriver:
    return SimulatedDriver()


@pytest.fixture
def connection(driver):
    conn = new_connection(
        SERVER,
        ["localhost"],
        ["numeric.sin.int64", "numeric.saw.float", "textual.color"],
        driver=driver,
        retry_interval=0.01,
    )
    yield conn
    conn.close()


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("OPCDA_NEXT_STATE_DIR", str(tmp_path / "state"))
    return tmp_path / "state"
