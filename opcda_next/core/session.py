import logging
from typing import List, Optional, Sequence

from ..drivers.base import BaseDriver, OPC_RUNNING
from .errors import AggregateFailure, ConnectFailure, DriverError
from .items import ItemRegistry

logger = logging.getLogger(__name__)


class Session:
    """One driver session and the steps to bring it up.

    ``connect`` builds exactly one group with one item container and hands the
    container over to a fresh :class:`ItemRegistry`.
    """

    def __init__(self, driver: BaseDriver):
        self.driver: Optional[BaseDriver] = driver

    def connect(self, server: str, node: str) -> ItemRegistry:
        if self.driver is None:
            raise ConnectFailure("connection failed: session is closed")
        driver = self.driver
        self.disconnect()

        logger.info("Connecting to %s on node %s", server, node)
        try:
            driver.connect(server, node)
        except DriverError as e:
            logger.info("Connection failed: %s", e)
            raise ConnectFailure(f"connection failed: {e}", step="connect") from e

        try:
            groups = driver.get_groups()
        except DriverError as e:
            raise ConnectFailure("cannot get OPCGroups property", step="groups") from e
        try:
            group = driver.add_group(groups)
        except DriverError as e:
            driver.release(groups)
            raise ConnectFailure("cannot add new OPC group", step="group") from e
        try:
            container = driver.get_item_container(group)
        except DriverError as e:
            raise ConnectFailure("cannot get OPC items", step="items") from e
        finally:
            driver.release(group)
            driver.release(groups)

        logger.info("Connected.")
        return ItemRegistry(driver, container)

    def try_connect(self, server: str, nodes: Sequence[str]) -> ItemRegistry:
        """Connect to the first node that accepts the session."""
        errors = []
        for node in nodes:
            try:
                return self.connect(server, node)
            except ConnectFailure as e:
                errors.append(e)
        raise AggregateFailure("try_connect was not successful: ", errors, separator="; ")

    def is_connected(self) -> bool:
        if self.driver is None:
            return False
        try:
            return self.driver.server_state() == OPC_RUNNING
        except Exception as e:
            logger.debug("ServerState query failed: %s", e)
            return False

    def list_servers(self, node: str) -> List[str]:
        if self.driver is None:
            return []
        try:
            return [s for s in self.driver.list_servers(node) if s]
        except DriverError as e:
            logger.warning("GetOPCServers call failed: %s", e)
            return []

    def public_group_names(self) -> List[str]:
        if not self.is_connected():
            return []
        try:
            return [g for g in self.driver.public_group_names() if g]
        except DriverError as e:
            logger.warning("PublicGroupNames query failed: %s", e)
            return []

    def disconnect(self) -> None:
        if self.is_connected():
            try:
                self.driver.disconnect()
            except DriverError as e:
                logger.warning("Failed to disconnect: %s", e)

    def close(self) -> None:
        if self.driver is None:
            return
        self.disconnect()
        try:
            self.driver.close()
        finally:
            self.driver = None
