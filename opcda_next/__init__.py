"""opcda_next package initializer"""
from .core.browser import Browser, create_tree, new_browser
from .core.connection import Connection, new_connection
from .core.errors import (
    AggregateFailure,
    ConnectFailure,
    DriverError,
    OPCError,
    ReadFailure,
    TagNotFound,
    UnknownItem,
    WriteFailure,
)
from .core.items import Item
from .core.tree import Leaf, Tree, collect_tags, extract_branch_by_name, extract_branch_by_names, pretty_print
from .log import debug, set_log_writer


__all__ = [
    "AggregateFailure",
    "Browser",
    "ConnectFailure",
    "Connection",
    "DriverError",
    "Item",
    "Leaf",
    "OPCError",
    "ReadFailure",
    "TagNotFound",
    "UnknownItem",
    "Tree",
    "WriteFailure",
    "collect_tags",
    "create_tree",
    "debug",
    "extract_branch_by_name",
    "extract_branch_by_names",
    "new_browser",
    "new_connection",
    "pretty_print",
    "set_log_writer",
]
