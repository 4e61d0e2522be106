import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..drivers import BaseDriver, create_driver
from .errors import AggregateFailure, OPCError, ReadFailure, TagNotFound
from .items import Item, ItemRegistry
from .session import Session

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.1
DEFAULT_NODES = ["localhost"]


class Connection:
    """Thread-safe polling client for one OPC server.

    Every public call holds the connection lock for its whole duration.
    A failed read triggers recovery on the calling thread: while the server is
    gone the caller blocks, retrying every ``retry_interval`` seconds, and
    all other callers wait on the lock.
    """

    def __init__(self, session: Session, items: Optional[ItemRegistry], server: str,
                 nodes: Sequence[str], retry_interval: float = RETRY_INTERVAL):
        self.session = session
        self.items = items
        self.server = server
        self.nodes = list(nodes)
        self.retry_interval = retry_interval
        self._lock = threading.RLock()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def is_connected(self) -> bool:
        return self.session is not None and self.session.is_connected()

    def read_item(self, tag: str) -> Item:
        with self._lock:
            entry = self.items.get(tag) if self.items is not None else None
            if entry is None:
                logger.warning("Tag %s not found. Add it first before reading it.", tag)
                return Item()
            try:
                return self.items.read_from_driver(entry.handle)
            except ReadFailure as e:
                logger.error("Cannot read %s: %s. Trying to fix.", tag, e)
                self._fix()
            return Item()

    def write(self, tag: str, value: Any) -> None:
        """Write ``value`` as is; an unknown tag is added as write-only first."""
        with self._lock:
            entry = self._registry().get(tag)
            if entry is None:
                try:
                    entry = self.items.add_single(tag)
                except TagNotFound as e:
                    raise TagNotFound(tag, f"failed to add tag: {e}") from e
                entry.write_only = True
            self.items.write_to_driver(entry.handle, value)

    def read(self) -> Dict[str, Item]:
        """Read every tag that is not write-only.

        The pass stops at the first failure; tags not reached are missing from
        the result.
        """
        with self._lock:
            result: Dict[str, Item] = {}
            if self.items is None:
                return result
            for entry in self.items.entries():
                if entry.write_only:
                    continue
                try:
                    result[entry.tag] = self.items.read_from_driver(entry.handle)
                except ReadFailure as e:
                    logger.error("Cannot read %s: %s. Trying to fix.", entry.tag, e)
                    self._fix()
                    break
            return result

    def add(self, *tags: str) -> None:
        with self._lock:
            self._registry().add(*tags)

    def remove(self, tag: str) -> None:
        with self._lock:
            if self.items is not None:
                self.items.remove(tag)

    def tags(self) -> List[str]:
        with self._lock:
            return self.items.tags() if self.items is not None else []

    def list_servers(self, node: str) -> List[str]:
        with self._lock:
            return self.session.list_servers(node)

    def public_group_names(self) -> List[str]:
        with self._lock:
            return self.session.public_group_names()

    def _registry(self) -> ItemRegistry:
        if self.items is None:
            raise OPCError("connection is closed")
        return self.items

    def _fix(self) -> None:
        if self.session.is_connected():
            return
        tags = self.items.tags() if self.items is not None else []
        while True:
            if self.items is not None:
                self.items.close()
                self.items = None
            try:
                self.items = self.session.try_connect(self.server, self.nodes)
            except OPCError as e:
                logger.error("%s", e)
                time.sleep(self.retry_interval)
                continue
            try:
                self.items.add(*tags)
                logger.info("Added %d tags", len(tags))
            except AggregateFailure as e:
                logger.warning("Could not re-add all tags: %s", e)
            return

    def close(self) -> None:
        with self._lock:
            if self.items is not None:
                self.items.close()
                self.items = None
            if self.session is not None:
                self.session.close()


def new_connection(server: str, nodes: Iterable[str] = DEFAULT_NODES, tags: Iterable[str] = (),
                   driver: Optional[BaseDriver] = None, retry_interval: float = RETRY_INTERVAL) -> Connection:
    """Connect to ``server`` on the first reachable node and add ``tags``."""
    nodes = list(nodes)
    session = Session(driver if driver is not None else create_driver())
    try:
        items = session.try_connect(server, nodes)
    except OPCError:
        session.close()
        raise
    try:
        items.add(*tags)
    except OPCError:
        items.close()
        session.close()
        raise
    return Connection(session, items, server, nodes, retry_interval=retry_interval)
