import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..drivers.base import BaseDriver
from .errors import AggregateFailure, DriverError, ReadFailure, TagNotFound, UnknownItem, WriteFailure

logger = logging.getLogger(__name__)

# item-level client handles are not supported, every item gets the same one
CLIENT_HANDLE = 1

QUALITY_MASK = 0xC0
QUALITY_GOOD = 0xC0


def ensure_int16(quality: Any) -> int:
    """Clamp a driver quality into a signed 16-bit code; anything else is 0."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        return 0
    if -32768 <= quality < 32768:
        return quality
    return 0


@dataclass(frozen=True)
class Item:
    value: Any = None
    quality: int = 0
    timestamp: Optional[datetime] = None

    @property
    def good(self) -> bool:
        return self.quality & QUALITY_MASK == QUALITY_GOOD


@dataclass
class RegistryEntry:
    tag: str
    handle: Any
    write_only: bool = False


class ItemRegistry:
    """The working set of tags added to the session's item container."""

    def __init__(self, driver: BaseDriver, container: Any):
        self.driver = driver
        self.container = container
        self._entries: Dict[str, RegistryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tag: str) -> bool:
        return tag in self._entries

    def get(self, tag: str) -> Optional[RegistryEntry]:
        return self._entries.get(tag)

    def tags(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def add_single(self, tag: str) -> RegistryEntry:
        try:
            handle = self.driver.add_item(self.container, tag, CLIENT_HANDLE)
        except UnknownItem as e:
            raise TagNotFound(tag, str(e)) from e
        except DriverError as e:
            raise DriverError(f"{tag}: {e}") from e
        # the tag is not part of the server's address space
        if handle is None:
            raise TagNotFound(tag, "no item handle returned")
        entry = RegistryEntry(tag, handle)
        self._entries[tag] = entry
        return entry

    def add(self, *tags: str) -> None:
        errors = []
        for tag in tags:
            try:
                self.add_single(tag)
            except (TagNotFound, DriverError) as e:
                logger.debug("Cannot add %s: %s", tag, e)
                errors.append(e)
        if errors:
            raise AggregateFailure("", errors)

    def remove(self, tag: str) -> None:
        entry = self._entries.pop(tag, None)
        if entry is not None:
            self.driver.release(entry.handle)

    def read_from_driver(self, handle: Any) -> Item:
        try:
            value, quality, timestamp = self.driver.read_cached(handle)
        except DriverError as e:
            raise ReadFailure(str(e)) from e
        return Item(value=value, quality=ensure_int16(quality), timestamp=timestamp)

    def write_to_driver(self, handle: Any, value: Any) -> None:
        try:
            self.driver.write(handle, value)
        except DriverError as e:
            raise WriteFailure(str(e)) from e

    def close(self) -> None:
        for tag in list(self._entries):
            self.remove(tag)
        if self.container is not None:
            self.driver.release(self.container)
            self.container = None
