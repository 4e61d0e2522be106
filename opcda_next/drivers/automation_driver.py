"""Driver implemented on top of the OPC Automation wrapper through pywin32.

COM runs in the multithreaded apartment so the automation object can be used
from every thread that calls into a ``Connection``. Each calling thread joins
the apartment on its first call; threads driving COM objects of their own
should call :func:`ole_init` first.
"""

import logging
import sys
import threading
from typing import Any, List, Optional, Sequence, Tuple

# must be set before pythoncom is first imported; 0 is COINIT_MULTITHREADED
sys.coinit_flags = 0

import pythoncom  # noqa: E402
import pywintypes  # noqa: E402
import win32com.client  # noqa: E402

from ..core.errors import DriverError, UnknownItem  # noqa: E402
from .base import BaseDriver, OPC_CACHE, OPC_RUNNING  # noqa: E402

logger = logging.getLogger(__name__)

# OPC.Automation.1 needs a 32-bit interpreter on most installations
WRAPPERS = ("OPC.Automation.1", "Graybox.OPC.DAWrapper.1")

# OPC_E_INVALIDITEMID, OPC_E_UNKNOWNITEMID
UNKNOWN_ITEM_CODES = (0xC0040008, 0xC0040007)


def ole_init() -> None:
    """Join the multithreaded COM apartment from the calling thread."""
    pythoncom.CoInitializeEx(pythoncom.COINIT_MULTITHREADED)


def ole_release() -> None:
    pythoncom.CoUninitialize()


def com_error_code(exc: Exception) -> Optional[int]:
    """Unsigned HRESULT of a ``com_error``, preferring the server's scode."""
    if not isinstance(exc, pywintypes.com_error):
        return None
    hresult, _, excepinfo, _ = exc.args
    if excepinfo and len(excepinfo) > 5 and excepinfo[5]:
        hresult = excepinfo[5]
    return hresult & 0xFFFFFFFF


def refine_com_error(exc: Exception) -> str:
    if not isinstance(exc, pywintypes.com_error):
        return str(exc)
    hresult, message, excepinfo, _ = exc.args
    desc = message
    if excepinfo and len(excepinfo) > 2 and excepinfo[2]:
        desc = excepinfo[2]
    desc = str(desc).rstrip("\r\n")
    return f"code={hresult}, desc={desc!r}"


class AutomationDriver(BaseDriver):
    def __init__(self, wrappers: Sequence[str] = WRAPPERS):
        self._lock = threading.RLock()
        self._com = threading.local()
        self._ensure_com()
        self._opc = None
        last_error: Optional[Exception] = None
        for wrapper in wrappers:
            try:
                self._opc = win32com.client.Dispatch(wrapper)
                logger.info("Loaded OPC Automation object with wrapper %s", wrapper)
                break
            except pywintypes.com_error as e:
                last_error = e
                logger.warning("Could not load OPC Automation object with wrapper [%s], err=[%s]",
                               wrapper, refine_com_error(e))
        if self._opc is None:
            raise DriverError(f"no OPC Automation wrapper available: {refine_com_error(last_error)}")

    def _ensure_com(self) -> None:
        if not getattr(self._com, "initialized", False):
            ole_init()
            self._com.initialized = True

    def _call(self, func, *args):
        with self._lock:
            if self._opc is None:
                raise DriverError("automation object is closed")
            self._ensure_com()
            try:
                return func(*args)
            except pywintypes.com_error as e:
                raise DriverError(refine_com_error(e)) from e

    def connect(self, server: str, node: str) -> None:
        self._call(lambda: self._opc.Connect(server, node))

    def disconnect(self) -> None:
        self._call(lambda: self._opc.Disconnect())

    def server_state(self) -> int:
        return int(self._call(lambda: self._opc.ServerState))

    def get_groups(self) -> Any:
        return self._call(lambda: self._opc.OPCGroups)

    def add_group(self, groups: Any) -> Any:
        return self._call(lambda: groups.Add())

    def get_item_container(self, group: Any) -> Any:
        return self._call(lambda: group.OPCItems)

    def add_item(self, container: Any, tag: str, client_handle: int) -> Any:
        try:
            return self._call(lambda: container.AddItem(tag, client_handle))
        except DriverError as e:
            if com_error_code(e.__cause__) in UNKNOWN_ITEM_CODES:
                raise UnknownItem(f"unknown item {tag}: {e}") from e.__cause__
            raise

    def read_cached(self, item: Any) -> Tuple[Any, Any, Any]:
        value, quality, timestamp = self._call(lambda: item.Read(OPC_CACHE))
        return value, quality, timestamp

    def write(self, item: Any, value: Any) -> None:
        self._call(lambda: item.Write(value))

    def list_servers(self, node: str) -> List[str]:
        progids = self._call(lambda: self._opc.GetOPCServers(node))
        return [p for p in (progids or []) if p]

    def public_group_names(self) -> List[str]:
        names = self._call(lambda: self._opc.PublicGroupNames)
        return [n for n in (names or []) if n]

    def create_browser(self) -> Any:
        return self._call(lambda: self._opc.CreateBrowser())

    def move_to_root(self, cursor: Any) -> None:
        self._call(lambda: cursor.MoveToRoot())

    def move_up(self, cursor: Any) -> None:
        self._call(lambda: cursor.MoveUp())

    def move_down(self, cursor: Any, branch: str) -> None:
        self._call(lambda: cursor.MoveDown(branch))

    def move_to(self, cursor: Any, branches: Sequence[str]) -> None:
        self._call(lambda: cursor.MoveTo(list(branches)))

    def current_position(self, cursor: Any) -> str:
        return str(self._call(lambda: cursor.CurrentPosition))

    def _collection(self, cursor: Any) -> List[str]:
        # browser collections are 1-based
        count = int(self._call(lambda: cursor.Count))
        return [str(self._call(lambda i=i: cursor.Item(i))) for i in range(1, count + 1)]

    def show_branches(self, cursor: Any) -> List[str]:
        self._call(lambda: cursor.ShowBranches())
        return self._collection(cursor)

    def show_leafs(self, cursor: Any) -> List[str]:
        self._call(lambda: cursor.ShowLeafs())
        return self._collection(cursor)

    def item_id(self, cursor: Any, leaf: str) -> str:
        return str(self._call(lambda: cursor.GetItemID(leaf)))

    def close(self) -> None:
        with self._lock:
            if self._opc is None:
                return
            try:
                if int(self._opc.ServerState) == OPC_RUNNING:
                    self._opc.Disconnect()
            except pywintypes.com_error as e:
                logger.warning("Failed to disconnect: %s", refine_com_error(e))
            finally:
                self._opc = None
