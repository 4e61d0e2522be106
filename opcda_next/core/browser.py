import logging
import threading
from typing import Any, Iterable, List, Optional

from ..drivers import BaseDriver, create_driver
from .errors import ConnectFailure, DriverError, OPCError
from .session import Session
from .tree import Leaf, Tree

logger = logging.getLogger(__name__)


def build_tree(driver: BaseDriver, cursor: Any, branch: Tree) -> None:
    """Populate ``branch`` from the cursor's current position, depth first.

    The cursor is back at the position it started from when this returns.
    """
    logger.debug("Entering branch: %s", branch.name)

    leaves = driver.show_leafs(cursor)
    logger.debug("\tLeafs count: %d", len(leaves))
    for i, name in enumerate(leaves, 1):
        leaf = Leaf(name=name, item_id=driver.item_id(cursor, name))
        logger.debug("\t%d %s", i, leaf)
        branch.leaves.append(leaf)

    names = driver.show_branches(cursor)
    logger.debug("\tBranches count: %d", len(names))
    i = 0
    while i < len(names):
        name = names[i]
        logger.debug("\t%d next branch: %s", i + 1, name)
        driver.move_down(cursor, name)
        try:
            build_tree(driver, cursor, branch.add_branch(name))
        finally:
            driver.move_up(cursor)
        # moving up invalidates the enumeration on some servers
        names = driver.show_branches(cursor)
        i += 1

    logger.debug("Exiting branch: %s", branch.name)


class Browser:
    """Navigates the namespace of a connected server one level at a time.

    Calls are ignored while the session is down, and driver errors during
    navigation are logged rather than raised.
    """

    def __init__(self, session: Session, cursor: Any, server: str = "", nodes: Iterable[str] = ()):
        self.session = session
        self.server = server
        self.nodes = list(nodes)
        self._cursor = cursor
        self._position = ""
        self._lock = threading.RLock()

    def __enter__(self) -> "Browser":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def driver(self) -> Optional[BaseDriver]:
        return self.session.driver

    def _ready(self) -> bool:
        return self._cursor is not None and self.session.is_connected()

    def _navigate(self, action: str, func, *args) -> None:
        with self._lock:
            if not self._ready():
                return
            try:
                func(self._cursor, *args)
            except DriverError as e:
                logger.warning("%s failed: %s", action, e)

    def move_to(self, *branches: str) -> None:
        self._navigate("MoveTo", lambda cursor: self.driver.move_to(cursor, list(branches)))

    def move_to_root(self) -> None:
        self._navigate("MoveToRoot", lambda cursor: self.driver.move_to_root(cursor))

    def move_up(self) -> None:
        self._navigate("MoveUp", lambda cursor: self.driver.move_up(cursor))

    def move_down(self, branch: str) -> None:
        self._navigate("MoveDown", lambda cursor: self.driver.move_down(cursor, branch))

    def position(self) -> str:
        with self._lock:
            if self._ready():
                try:
                    self._position = self.driver.current_position(self._cursor)
                except DriverError as e:
                    logger.warning("CurrentPosition failed: %s", e)
            return self._position

    def show_branches(self) -> List[str]:
        with self._lock:
            if not self._ready():
                return []
            try:
                return list(self.driver.show_branches(self._cursor))
            except DriverError as e:
                logger.warning("ShowBranches failed: %s", e)
                return []

    def show_leafs(self) -> List[Leaf]:
        with self._lock:
            if not self._ready():
                return []
            try:
                return [Leaf(name=name, item_id=self.driver.item_id(self._cursor, name))
                        for name in self.driver.show_leafs(self._cursor)]
            except DriverError as e:
                logger.warning("ShowLeafs failed: %s", e)
                return []

    def build_tree(self) -> Optional[Tree]:
        """Walk the whole namespace from the root; the cursor ends at the root."""
        with self._lock:
            if not self._ready():
                return None
            self.driver.move_to_root(self._cursor)
            root = Tree("root")
            build_tree(self.driver, self._cursor, root)
            return root

    def close(self) -> None:
        with self._lock:
            if self._cursor is not None:
                if self.driver is not None:
                    self.driver.release(self._cursor)
                self._cursor = None
            if self.session.is_connected():
                self.session.close()


def new_browser(server: str, nodes: Iterable[str], driver: Optional[BaseDriver] = None) -> Browser:
    nodes = list(nodes)
    session = Session(driver if driver is not None else create_driver())
    try:
        items = session.try_connect(server, nodes)
        items.close()
        try:
            cursor = session.driver.create_browser()
        except DriverError as e:
            raise ConnectFailure("failed to create OPC browser", step="browser") from e
        try:
            session.driver.move_to_root(cursor)
        except DriverError as e:
            session.driver.release(cursor)
            raise ConnectFailure(f"cannot move browser to root: {e}", step="browser") from e
    except OPCError:
        session.close()
        raise
    return Browser(session, cursor, server, nodes)


def create_tree(server: str, nodes: Iterable[str], driver: Optional[BaseDriver] = None) -> Tree:
    """Connect, collect the full namespace of ``server`` and disconnect again."""
    with new_browser(server, nodes, driver) as browser:
        tree = browser.build_tree()
    if tree is None:
        raise ConnectFailure("cannot create browser because we are not connected", step="browser")
    return tree
