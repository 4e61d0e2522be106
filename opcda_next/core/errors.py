"""Typed exceptions raised by the OPC-DA client."""

from typing import List, Optional


class OPCError(Exception):
    """Base exception for opcda_next."""


class DriverError(OPCError):
    """A call into the server driver failed."""


class UnknownItem(DriverError):
    """The server does not know the requested item id."""


class ConnectFailure(OPCError):
    """Setting up the session failed at a specific step."""

    def __init__(self, message: str, step: str = "connect"):
        self.step = step
        super().__init__(message)


class TagNotFound(OPCError):
    """The server refused to add a tag to the item container."""

    def __init__(self, tag: str, detail: str = ""):
        self.tag = tag
        super().__init__(f"{tag}: {detail}" if detail else tag)


class ReadFailure(OPCError):
    pass


class WriteFailure(OPCError):
    pass


class AggregateFailure(OPCError):
    """Several independent operations failed; ``errors`` keeps each one."""

    def __init__(self, message: str, errors: Optional[List[Exception]] = None, separator: str = ";;"):
        self.errors = list(errors or [])
        detail = separator.join(str(e) for e in self.errors)
        super().__init__(f"{message}{detail}")
