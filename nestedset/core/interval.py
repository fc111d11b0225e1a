"""
Interval model of a nested set node.

A node stores a ``(lft, rgt)`` interval and a parent key. Interval containment
encodes ancestry, so all relationship checks here are pure O(1) comparisons.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from .exceptions import BoundsNotSetError

if TYPE_CHECKING:
    from .config import TreeSchema
    from .mutation import PendingChange

Snapshot = Tuple[Optional[int], Optional[int], Any]


class Node:
    """One tree record: tree columns plus arbitrary data columns.

    ``exists`` tells whether the record is persisted. ``parent`` and
    ``children`` are in-memory links filled by tree assembly, and ``pending``
    holds the single outstanding positioning change.
    """

    def __init__(
        self,
        key: Any = None,
        lft: Optional[int] = None,
        rgt: Optional[int] = None,
        parent_id: Any = None,
        data: Optional[Dict[str, Any]] = None,
        exists: bool = False,
    ) -> None:
        self.key = key
        self.lft = lft
        self.rgt = rgt
        self.parent_id = parent_id
        self.data: Dict[str, Any] = dict(data or {})
        self.exists = exists
        self.parent: Optional[Node] = None
        self.children: List[Node] = []
        self.pending: Optional["PendingChange"] = None
        self._synced: Snapshot = (lft, rgt, parent_id) if exists else (None, None, None)

    @classmethod
    def from_row(cls, schema: "TreeSchema", row: Dict[str, Any]) -> "Node":
        data = {k: v for k, v in row.items() if k not in schema.tree_columns}
        return cls(
            key=row.get(schema.key_column),
            lft=row.get(schema.lft_column),
            rgt=row.get(schema.rgt_column),
            parent_id=row.get(schema.parent_column),
            data=data,
            exists=True,
        )

    def to_row(self, schema: "TreeSchema", with_key: bool = True) -> Dict[str, Any]:
        row = {k: v for k, v in self.data.items() if k != "depth"}
        if with_key and self.key is not None:
            row[schema.key_column] = self.key
        row[schema.lft_column] = self.lft
        row[schema.rgt_column] = self.rgt
        row[schema.parent_column] = self.parent_id
        return row

    def __getitem__(self, name: str) -> Any:
        return self.data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.data[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def __repr__(self) -> str:
        return (
            f"Node(key={self.key!r}, lft={self.lft}, rgt={self.rgt}, "
            f"parent_id={self.parent_id!r})"
        )

    # -- bounds ------------------------------------------------------------

    def has_bounds(self) -> bool:
        return bool(self.lft) and bool(self.rgt)

    def lft_or_fail(self) -> int:
        if not self.has_bounds():
            raise BoundsNotSetError(key=self.key)
        return self.lft

    def rgt_or_fail(self) -> int:
        if not self.has_bounds():
            raise BoundsNotSetError(key=self.key)
        return self.rgt

    def bounds(self) -> Tuple[int, int]:
        return self.lft_or_fail(), self.rgt_or_fail()

    def set_raw(self, lft: Optional[int], rgt: Optional[int], parent_id: Any) -> "Node":
        self.lft = lft
        self.rgt = rgt
        self.parent_id = parent_id
        return self

    def snapshot(self) -> Snapshot:
        return self.lft, self.rgt, self.parent_id

    def is_bounds_dirty(self) -> bool:
        """Whether tree columns differ from what the store last held."""
        return self.snapshot() != self._synced

    def mark_synced(self) -> None:
        self._synced = self.snapshot()

    def reset(self) -> None:
        """Forget persistence so that a later save inserts the node as a fresh root."""
        self.exists = False
        self.set_raw(None, None, None)
        self.parent = None
        self.pending = None
        self._synced = (None, None, None)

    # -- interval math -----------------------------------------------------

    def height(self) -> int:
        """Interval width ``rgt - lft + 1``; 2 for a node not stored yet."""
        if not self.exists:
            return 2
        lft, rgt = self.bounds()
        return rgt - lft + 1

    def descendant_count(self) -> int:
        return (self.height() + 1) // 2 - 1

    def is_root(self) -> bool:
        return self.parent_id is None

    def is_leaf(self) -> bool:
        lft, rgt = self.bounds()
        return lft + 1 == rgt

    def is_descendant_of(self, other: "Node") -> bool:
        lft = self.lft_or_fail()
        other_lft, other_rgt = other.bounds()
        return other_lft < lft < other_rgt

    def is_self_or_descendant_of(self, other: "Node") -> bool:
        lft = self.lft_or_fail()
        other_lft, other_rgt = other.bounds()
        return other_lft <= lft < other_rgt

    def is_ancestor_of(self, other: "Node") -> bool:
        return other.is_descendant_of(self)

    def is_self_or_ancestor_of(self, other: "Node") -> bool:
        return other.is_self_or_descendant_of(self)

    def is_child_of(self, other: "Node") -> bool:
        return self.parent_id is not None and self.parent_id == other.key

    def is_sibling_of(self, other: "Node") -> bool:
        return self.parent_id == other.parent_id

    def scope_values(self, columns: Sequence[str]) -> Dict[str, Any]:
        return {column: self.data.get(column) for column in columns}
