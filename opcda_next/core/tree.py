"""In-memory model of a server's tag namespace."""

import sys
import weakref
from dataclasses import dataclass
from typing import List, Optional, TextIO


@dataclass(frozen=True)
class Leaf:
    name: str
    item_id: str


class Tree:
    """A branch of the namespace.

    Children are owned through ``branches``; ``parent`` is a weak,
    informational back-reference and is never followed when walking the tree.
    """

    def __init__(self, name: str, parent: Optional["Tree"] = None,
                 branches: Optional[List["Tree"]] = None, leaves: Optional[List[Leaf]] = None):
        self.name = name
        self._parent = weakref.ref(parent) if parent is not None else None
        self.branches: List[Tree] = list(branches or [])
        self.leaves: List[Leaf] = list(leaves or [])

    @property
    def parent(self) -> Optional["Tree"]:
        return self._parent() if self._parent is not None else None

    def add_branch(self, name: str) -> "Tree":
        child = Tree(name, parent=self)
        self.branches.append(child)
        return child

    def __repr__(self):
        return f"Tree({self.name!r}, branches={len(self.branches)}, leaves={len(self.leaves)})"


def extract_branch_by_name(tree: Optional[Tree], name: str) -> Optional[Tree]:
    """Return the first node named ``name`` in pre-order, the root included."""
    if tree is None:
        return None
    if tree.name == name:
        return tree
    for branch in tree.branches:
        subtree = extract_branch_by_name(branch, name)
        if subtree is not None:
            return subtree
    return None


def extract_branch_by_names(tree: Optional[Tree], *names: str) -> Optional[Tree]:
    """Follow ``names`` one lookup at a time, each starting from the previous hit."""
    for name in names:
        tree = extract_branch_by_name(tree, name)
        if tree is None:
            return None
    return tree


def collect_tags(tree: Tree) -> List[str]:
    collection = [leaf.item_id for leaf in tree.leaves]
    for branch in tree.branches:
        collection.extend(collect_tags(branch))
    return collection


def render_tree(tree: Optional[Tree]) -> str:
    if tree is None:
        return "Tree is empty"
    lines = [tree.name]
    _render_subtree(tree, 1, lines)
    return "\n".join(lines)


def _render_subtree(tree: Tree, level: int, lines: List[str]) -> None:
    space = "  " * level
    for leaf in tree.leaves:
        lines.append(f"{space} - {leaf.item_id}")
    for branch in tree.branches:
        lines.append(f"{space} + {branch.name}")
        _render_subtree(branch, level + 1, lines)


def pretty_print(tree: Optional[Tree], file: Optional[TextIO] = None) -> None:
    print(render_tree(tree), file=file or sys.stdout)
