"""
In-memory tree assembly over a flat list of nodes.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from .interval import Node

RootRef = Union[Node, int, str, None]


class NodeCollection(list):
    """List of nodes with helpers to link them into a tree."""

    def group_by_parent(self) -> Dict[Any, List[Node]]:
        groups: Dict[Any, List[Node]] = {}
        for node in self:
            groups.setdefault(node.parent_id, []).append(node)
        return groups

    def get_dictionary(self) -> Dict[Any, Node]:
        return {node.key: node for node in self}

    def keys(self) -> List[Any]:
        return [node.key for node in self]

    def pluck(self, field: str) -> List[Any]:
        """Values of a data column, or of ``key``/``lft``/``rgt``/``parent_id``."""
        if field in ("key", "lft", "rgt", "parent_id"):
            return [getattr(node, field) for node in self]
        return [node.get(field) for node in self]

    def link_nodes(self) -> "NodeCollection":
        """Fill ``parent`` and ``children`` of every node from parent keys."""
        if not self:
            return self
        groups = self.group_by_parent()
        for node in self:
            if node.parent_id is None:
                node.parent = None
            children = groups.get(node.key, [])
            for child in children:
                child.parent = node
            node.children = list(children)
        return self

    def root_key(self, root: RootRef = None) -> Any:
        """Key whose children form the top level.

        Defaults to the parent key of the node with the least ``lft``.
        """
        if isinstance(root, Node):
            return root.key
        if root is not None:
            return root
        least: Optional[Node] = None
        for node in self:
            if least is None or node.lft < least.lft:
                least = node
        return least.parent_id if least is not None else None

    def to_tree(self, root: RootRef = None) -> "NodeCollection":
        """Link nodes and return the top level nodes."""
        if not self:
            return NodeCollection()
        self.link_nodes()
        root_key = self.root_key(root)
        return NodeCollection(node for node in self if node.parent_id == root_key)

    def to_flat_tree(self, root: RootRef = None) -> "NodeCollection":
        """Pre-order flattening: every node is followed by its descendants."""
        result = NodeCollection()
        if not self:
            return result
        groups = self.group_by_parent()
        stack = list(reversed(groups.get(self.root_key(root), [])))
        seen = set()
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            result.append(node)
            stack.extend(reversed(groups.get(node.key, [])))
        return result
