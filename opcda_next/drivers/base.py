from abc import ABC, abstractmethod
from typing import Any, List, Sequence, Tuple

# OPCServerState
OPC_RUNNING = 1
OPC_FAILED = 2
OPC_NOCONFIG = 3
OPC_SUSPENDED = 4
OPC_TEST = 5
OPC_DISCONNECTED = 6

# OPCDataSource
OPC_CACHE = 1
OPC_DEVICE = 2


class BaseDriver(ABC):
    """Driver abstraction for an OPC-DA automation server.

    One driver instance is one session. Handles returned by the driver are
    opaque to the caller and only ever passed back into the same driver.
    Every failed call raises ``DriverError``.
    """

    @abstractmethod
    def connect(self, server: str, node: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def server_state(self) -> int:
        raise NotImplementedError

    # groups and items

    @abstractmethod
    def get_groups(self) -> Any:
        raise NotImplementedError

    @abstractmethod
    def add_group(self, groups: Any) -> Any:
        raise NotImplementedError

    @abstractmethod
    def get_item_container(self, group: Any) -> Any:
        raise NotImplementedError

    def release(self, handle: Any) -> None:
        """Give back a handle obtained from this driver."""

    @abstractmethod
    def add_item(self, container: Any, tag: str, client_handle: int) -> Any:
        raise NotImplementedError

    @abstractmethod
    def read_cached(self, item: Any) -> Tuple[Any, Any, Any]:
        """Return ``(value, quality, timestamp)`` read from the server cache."""
        raise NotImplementedError

    @abstractmethod
    def write(self, item: Any, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_servers(self, node: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def public_group_names(self) -> List[str]:
        raise NotImplementedError

    # browse cursor

    @abstractmethod
    def create_browser(self) -> Any:
        raise NotImplementedError

    @abstractmethod
    def move_to_root(self, cursor: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def move_up(self, cursor: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def move_down(self, cursor: Any, branch: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def move_to(self, cursor: Any, branches: Sequence[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def current_position(self, cursor: Any) -> str:
        raise NotImplementedError

    @abstractmethod
    def show_branches(self, cursor: Any) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def show_leafs(self, cursor: Any) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def item_id(self, cursor: Any, leaf: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError
