"""Hierarchical view of discovered repositories."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rich.text import Text

from .status import status_text, to_ansi
from ..core.errors import ValidationError
from ..core.types import RepositoryRecord

BRANCH_CONNECTOR = "├── "
LAST_CONNECTOR = "└── "
VERTICAL_PREFIX = "│   "
EMPTY_PREFIX = "    "

SYMLINK_MARKER = "@"
BARE_MARKER = "(bare)"


@dataclass
class TreeNode:
    """A directory in the rendered tree.

    Nodes without a record are intermediate directories on the way to a
    repository.
    """
    name: str
    relative_path: str
    depth: int = 0
    record: Optional[RepositoryRecord] = None
    children: List['TreeNode'] = field(default_factory=list)
    is_last: bool = False

    @property
    def is_repository(self) -> bool:
        return self.record is not None

    def add_child(self, child: 'TreeNode') -> None:
        child.depth = self.depth + 1
        self.children.append(child)

    def sort_children(self) -> None:
        """Sort children by name and flag the last one, recursively."""
        self.children.sort(key=lambda node: node.name)
        for index, child in enumerate(self.children):
            child.is_last = index == len(self.children) - 1
            child.sort_children()

    def validate(self) -> None:
        """Check the node invariants, including its record if present.

        Raises:
            ValidationError: If an invariant does not hold
        """
        if not self.name:
            raise ValidationError("node name cannot be empty")
        if self.depth < 0:
            raise ValidationError("depth cannot be negative")
        if not self.relative_path:
            raise ValidationError("relative path cannot be empty")
        if self.record is not None:
            self.record.validate()

    def walk(self):
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


def build_tree(root_path: str, records: List[RepositoryRecord]) -> TreeNode:
    """Build a tree of repositories relative to the scan root.

    Path segments between the root and a repository become intermediate
    directory nodes.

    Args:
        root_path: Directory the scan started from
        records: Repositories to place in the tree

    Returns:
        Root node (relative path ``.``)
    """
    root_abs = os.path.abspath(root_path)
    root = TreeNode(name=os.path.basename(root_abs) or root_abs, relative_path=".")
    nodes: Dict[str, TreeNode] = {".": root}

    for record in records:
        relative = os.path.relpath(record.path, root_abs)
        if relative == ".":
            root.record = record
            continue

        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            # Outside the root: keep it visible as a top-level entry
            parts = [relative]
        else:
            parts = relative.split(os.sep)

        parent = root
        for index in range(len(parts)):
            key = os.path.join(*parts[:index + 1])
            node = nodes.get(key)
            if node is None:
                node = TreeNode(name=parts[index], relative_path=key)
                parent.add_child(node)
                nodes[key] = node
            parent = node
        parent.record = record

    root.sort_children()
    return root


def _node_label(node: TreeNode) -> Text:
    label = Text(node.name)
    record = node.record
    if record is None:
        return label

    if record.is_symlink:
        label.append(f" {SYMLINK_MARKER}")
    if record.is_bare:
        label.append(f" {BARE_MARKER}")
    if record.status is not None:
        label.append(" ")
        label.append(status_text(record.status))
    return label


def format_tree(root: TreeNode, color: bool = False) -> str:
    """Render a tree with box-drawing connectors.

    Args:
        root: Root node from build_tree()
        color: Emit ANSI colors

    Returns:
        Rendered tree, one node per line, ending with a newline
    """
    lines = [to_ansi(_node_label(root), color)]

    def render(node: TreeNode, prefix: str) -> None:
        for child in node.children:
            connector = LAST_CONNECTOR if child.is_last else BRANCH_CONNECTOR
            lines.append(prefix + connector + to_ansi(_node_label(child), color))
            render(child, prefix + (EMPTY_PREFIX if child.is_last else VERTICAL_PREFIX))

    render(root, "")
    return "\n".join(lines) + "\n"


def validate_tree(root: TreeNode) -> None:
    """Validate every node of a tree.

    Raises:
        ValidationError: On the first node that fails validation
    """
    for node in root.walk():
        node.validate()
