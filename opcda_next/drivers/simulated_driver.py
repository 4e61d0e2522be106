"""In-memory OPC-DA server used for tests, demos and offline development."""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.errors import DriverError, UnknownItem
from .base import BaseDriver, OPC_DISCONNECTED, OPC_RUNNING

logger = logging.getLogger(__name__)

QUALITY_GOOD = 192

DEFAULT_SERVERS = ("Graybox.Simulator",)
DEFAULT_NODES = ("localhost",)

# nested dicts are branches, anything else is a leaf value
DEFAULT_NAMESPACE: Dict[str, Any] = {
    "bandwidth": 100,
    "options": {
        "frequency": 1.0,
        "amplitude": 10.0,
    },
    "numeric": {
        "sin": {"int64": 0, "float": 0.0},
        "saw": {"int64": 0, "float": 0.0},
    },
    "textual": {
        "color": "red",
        "weekday": "Monday",
    },
}


class _Handle:
    def __init__(self, kind: str, generation: int, tag: Optional[str] = None):
        self.kind = kind
        self.generation = generation
        self.tag = tag
        self.released = False

    def __repr__(self):
        return f"<sim {self.kind} {self.tag or ''} gen={self.generation}>"


class _Cursor:
    def __init__(self, generation: int):
        self.generation = generation
        self.path: List[str] = []
        self.released = False


class SimulatedDriver(BaseDriver):
    """A server that lives in this process.

    Tag identifiers are the dotted paths of the namespace leaves. The server
    can be taken down with :meth:`shutdown` (or :meth:`shutdown_after` a number
    of successful reads) and brought back with :meth:`start`; handles issued
    before a shutdown stay dead, as with a real server restart.
    """

    def __init__(self, namespace: Optional[Dict[str, Any]] = None,
                 servers: Iterable[str] = DEFAULT_SERVERS,
                 nodes: Iterable[str] = DEFAULT_NODES):
        self.namespace = copy.deepcopy(DEFAULT_NAMESPACE if namespace is None else namespace)
        self.servers = list(servers)
        self.nodes = list(nodes)
        self.qualities: Dict[str, int] = {}
        self.public_groups: List[str] = []
        self.released: List[Any] = []
        self.connect_attempts = 0
        self._lock = threading.RLock()
        self._up = True
        self._connected = False
        self._closed = False
        self._generation = 0
        self._reads_left: Optional[int] = None

    # simulation controls

    def shutdown(self) -> None:
        with self._lock:
            logger.debug("simulated server going down")
            self._up = False
            self._connected = False
            self._reads_left = None

    def start(self) -> None:
        with self._lock:
            logger.debug("simulated server back up")
            self._up = True

    def shutdown_after(self, reads: int) -> None:
        """Go down on the read following ``reads`` successful ones."""
        with self._lock:
            self._reads_left = reads

    def set_quality(self, tag: str, quality: Any) -> None:
        with self._lock:
            self.qualities[tag] = quality

    def value(self, tag: str) -> Any:
        branch, leaf = self._locate(tag)
        return branch[leaf]

    # helpers

    def _locate(self, tag: str) -> Tuple[Dict[str, Any], str]:
        parts = tag.split(".")
        node = self.namespace
        for part in parts[:-1]:
            node = node.get(part)
            if not isinstance(node, dict):
                raise UnknownItem(f"unknown item {tag}")
        if parts[-1] not in node or isinstance(node[parts[-1]], dict):
            raise UnknownItem(f"unknown item {tag}")
        return node, parts[-1]

    def _branch_at(self, path: Sequence[str]) -> Dict[str, Any]:
        node = self.namespace
        for part in path:
            node = node.get(part)
            if not isinstance(node, dict):
                raise DriverError(f"no branch {'.'.join(path)}")
        return node

    def _check_session(self) -> None:
        if self._closed:
            raise DriverError("driver is closed")
        if not (self._up and self._connected):
            raise DriverError("server is not connected")

    def _check_handle(self, handle: Any) -> None:
        self._check_session()
        if handle is None or handle.released or handle.generation != self._generation:
            raise DriverError(f"stale handle {handle!r}")

    # session

    def connect(self, server: str, node: str) -> None:
        with self._lock:
            self.connect_attempts += 1
            if self._closed:
                raise DriverError("driver is closed")
            if not self._up:
                raise DriverError(f"server {server} on {node} is unavailable")
            if node not in self.nodes:
                raise DriverError(f"node {node} is unreachable")
            if server not in self.servers:
                raise DriverError(f"server {server} is not registered on {node}")
            self._connected = True
            self._generation += 1

    def disconnect(self) -> None:
        with self._lock:
            self._connected = False

    def server_state(self) -> int:
        with self._lock:
            if self._closed:
                raise DriverError("driver is closed")
            return OPC_RUNNING if self._up and self._connected else OPC_DISCONNECTED

    def get_groups(self) -> Any:
        with self._lock:
            self._check_session()
            return _Handle("groups", self._generation)

    def add_group(self, groups: Any) -> Any:
        with self._lock:
            self._check_handle(groups)
            return _Handle("group", self._generation)

    def get_item_container(self, group: Any) -> Any:
        with self._lock:
            self._check_handle(group)
            return _Handle("items", self._generation)

    def release(self, handle: Any) -> None:
        with self._lock:
            if handle is not None:
                handle.released = True
                self.released.append(handle)

    def add_item(self, container: Any, tag: str, client_handle: int) -> Any:
        with self._lock:
            self._check_handle(container)
            self._locate(tag)
            return _Handle("item", self._generation, tag)

    def read_cached(self, item: Any) -> Tuple[Any, Any, Any]:
        with self._lock:
            if self._reads_left is not None:
                if self._reads_left <= 0:
                    self.shutdown()
                else:
                    self._reads_left -= 1
            self._check_handle(item)
            branch, leaf = self._locate(item.tag)
            quality = self.qualities.get(item.tag, QUALITY_GOOD)
            return branch[leaf], quality, datetime.now(timezone.utc)

    def write(self, item: Any, value: Any) -> None:
        with self._lock:
            self._check_handle(item)
            branch, leaf = self._locate(item.tag)
            branch[leaf] = value

    def list_servers(self, node: str) -> List[str]:
        with self._lock:
            if node not in self.nodes:
                raise DriverError(f"node {node} is unreachable")
            return list(self.servers)

    def public_group_names(self) -> List[str]:
        with self._lock:
            self._check_session()
            return list(self.public_groups)

    # browse cursor

    def create_browser(self) -> Any:
        with self._lock:
            self._check_session()
            return _Cursor(self._generation)

    def _check_cursor(self, cursor: Any) -> None:
        self._check_handle(cursor)

    def move_to_root(self, cursor: Any) -> None:
        with self._lock:
            self._check_cursor(cursor)
            cursor.path = []

    def move_up(self, cursor: Any) -> None:
        with self._lock:
            self._check_cursor(cursor)
            if cursor.path:
                cursor.path.pop()

    def move_down(self, cursor: Any, branch: str) -> None:
        with self._lock:
            self._check_cursor(cursor)
            self._branch_at(cursor.path + [branch])
            cursor.path.append(branch)

    def move_to(self, cursor: Any, branches: Sequence[str]) -> None:
        with self._lock:
            self._check_cursor(cursor)
            self._branch_at(list(branches))
            cursor.path = list(branches)

    def current_position(self, cursor: Any) -> str:
        with self._lock:
            self._check_cursor(cursor)
            return ".".join(cursor.path)

    def show_branches(self, cursor: Any) -> List[str]:
        with self._lock:
            self._check_cursor(cursor)
            node = self._branch_at(cursor.path)
            return [name for name, child in node.items() if isinstance(child, dict)]

    def show_leafs(self, cursor: Any) -> List[str]:
        with self._lock:
            self._check_cursor(cursor)
            node = self._branch_at(cursor.path)
            return [name for name, child in node.items() if not isinstance(child, dict)]

    def item_id(self, cursor: Any, leaf: str) -> str:
        with self._lock:
            self._check_cursor(cursor)
            return ".".join(cursor.path + [leaf])

    def close(self) -> None:
        with self._lock:
            self._connected = False
            self._closed = True
