"""
Fluent, scope-confined queries over a nested set table.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import copy
from typing import Any, List, Mapping, Optional, Sequence

from .collection import NodeCollection
from .config import TreeSchema, check_identifier
from .exceptions import NodeNotFoundError
from .interval import Node
from .mutation import MutationEngine
from .predicates import NodeOrKey, Predicate, PredicateBuilder
from .store.base import BaseRecordStore

_OPERATORS = ("=", "<>", "!=", "<", "<=", ">", ">=", "LIKE")
_DIRECTIONS = ("ASC", "DESC")

_WITHOUT_TRASHED = "without"
_WITH_TRASHED = "with"
_ONLY_TRASHED = "only"


class TreeQuery:
    """Query builder for one scope of a tree table.

    Filters accumulate in place and every filter method returns the query, so
    calls chain. Soft-deleted rows are excluded unless :meth:`with_trashed` or
    :meth:`only_trashed` is used.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        schema: TreeSchema,
        scope: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.scope = dict(scope or {})
        self.builder = PredicateBuilder(schema, self.scope)
        self._wheres: List[Predicate] = []
        self._columns: List[Predicate] = []
        self._order: List[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._trashed = _WITHOUT_TRASHED

    def clone(self) -> "TreeQuery":
        other = copy.copy(self)
        other._wheres = list(self._wheres)
        other._columns = list(self._columns)
        other._order = list(self._order)
        return other

    # -- plain filters -----------------------------------------------------

    def where(self, column: Any, value: Any = None, operator: str = "=") -> "TreeQuery":
        """Add a filter: a :class:`Predicate`, or ``column <operator> value``.

        ``None`` with ``=`` / ``<>`` renders ``IS NULL`` / ``IS NOT NULL``.
        """
        if isinstance(column, Predicate):
            self._wheres.append(column)
            return self
        column = check_identifier(column)
        operator = operator.upper()
        if operator not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        if value is None and operator in ("=", "<>", "!="):
            null_check = "IS NULL" if operator == "=" else "IS NOT NULL"
            self._wheres.append(Predicate(f"{column} {null_check}"))
        else:
            self._wheres.append(Predicate(f"{column} {operator} ?", (value,)))
        return self

    def where_in(self, column: str, values: Sequence[Any]) -> "TreeQuery":
        column = check_identifier(column)
        if not values:
            self._wheres.append(Predicate("0 = 1"))
            return self
        marks = ", ".join("?" for _ in values)
        self._wheres.append(Predicate(f"{column} IN ({marks})", tuple(values)))
        return self

    def where_key(self, key: Any) -> "TreeQuery":
        self._wheres.append(self.builder.key_is(key))
        return self

    # -- tree filters ------------------------------------------------------

    def where_ancestor_of(self, node_or_key: NodeOrKey, and_self: bool = False) -> "TreeQuery":
        self._wheres.append(self.builder.ancestor_of(node_or_key, and_self))
        return self

    def _resolve(self, node_or_key: NodeOrKey) -> Node:
        if isinstance(node_or_key, Node):
            return node_or_key
        engine = MutationEngine(self.store, self.schema)
        data = engine.get_node_data(self.scope, node_or_key, required=True)
        return Node(
            key=node_or_key,
            lft=data[self.schema.lft_column],
            rgt=data[self.schema.rgt_column],
            parent_id=data[self.schema.parent_column],
            exists=True,
        )

    def where_descendant_of(
        self, node_or_key: NodeOrKey, and_self: bool = False, negate: bool = False
    ) -> "TreeQuery":
        """Restrict to the target's subtree (or outside of it with ``negate``).

        Raises:
            NodeNotFoundError: If a key is given and does not resolve
        """
        predicate = self.builder.descendant_of(self._resolve(node_or_key), and_self)
        self._wheres.append(~predicate if negate else predicate)
        return self

    def where_not_descendant_of(self, node_or_key: NodeOrKey, and_self: bool = False) -> "TreeQuery":
        return self.where_descendant_of(node_or_key, and_self, negate=True)

    def where_is_after(self, node_or_key: NodeOrKey) -> "TreeQuery":
        self._wheres.append(self.builder.after(node_or_key))
        return self

    def where_is_before(self, node_or_key: NodeOrKey) -> "TreeQuery":
        self._wheres.append(self.builder.before(node_or_key))
        return self

    def where_is_root(self) -> "TreeQuery":
        self._wheres.append(self.builder.is_root())
        return self

    def without_root(self) -> "TreeQuery":
        self._wheres.append(self.builder.without_root())
        return self

    def where_is_leaf(self) -> "TreeQuery":
        self._wheres.append(self.builder.is_leaf())
        return self

    def has_children(self) -> "TreeQuery":
        self._wheres.append(self.builder.has_children())
        return self

    def with_depth(self, alias: str = "depth") -> "TreeQuery":
        """Add a computed column with the number of ancestors of each row."""
        self._columns.append(self.builder.depth_column(check_identifier(alias)))
        return self

    def with_trashed(self) -> "TreeQuery":
        self._trashed = _WITH_TRASHED
        return self

    def only_trashed(self) -> "TreeQuery":
        self._trashed = _ONLY_TRASHED
        return self

    # -- ordering and paging ----------------------------------------------

    def order_by(self, column: str, direction: str = "asc") -> "TreeQuery":
        direction = direction.upper()
        if direction not in _DIRECTIONS:
            raise ValueError(f"Unsupported order direction: {direction}")
        self._order.append(f"{check_identifier(column)} {direction}")
        return self

    def default_order(self, direction: str = "asc") -> "TreeQuery":
        """Order by left boundary, i.e. pre-order."""
        self._order = []
        return self.order_by(self.schema.lft_column, direction)

    def reversed(self) -> "TreeQuery":
        return self.default_order("desc")

    def limit(self, value: int) -> "TreeQuery":
        self._limit = value
        return self

    def offset(self, value: int) -> "TreeQuery":
        self._offset = value
        return self

    # -- execution ---------------------------------------------------------

    def _where(self) -> Predicate:
        if self._trashed == _WITHOUT_TRASHED:
            trashed = self.builder.active()
        elif self._trashed == _ONLY_TRASHED:
            trashed = self.builder.trashed()
        else:
            trashed = None
        return Predicate.all(self.builder.scope(), trashed, *self._wheres)

    def get(self) -> NodeCollection:
        rows = self.store.select_where(
            self.schema.table,
            self._where(),
            extra_columns=self._columns,
            order_by=self._order or None,
            limit=self._limit,
            offset=self._offset,
        )
        return NodeCollection(Node.from_row(self.schema, row) for row in rows)

    def first(self) -> Optional[Node]:
        nodes = self.clone().limit(1).get()
        return nodes[0] if nodes else None

    def find(self, key: Any) -> Optional[Node]:
        return self.clone().where_key(key).first()

    def find_or_fail(self, key: Any) -> Node:
        node = self.find(key)
        if node is None:
            raise NodeNotFoundError(f"Node {key!r} not found", key=key)
        return node

    def count(self) -> int:
        return self.store.count_where(self.schema.table, self._where())

    def pluck(self, column: str) -> List[Any]:
        rows = self.store.select_where(
            self.schema.table,
            self._where(),
            columns=[check_identifier(column)],
            order_by=self._order or None,
            limit=self._limit,
            offset=self._offset,
        )
        return [row[column] for row in rows]

    def value(self, column: str) -> Any:
        values = self.clone().limit(1).pluck(column)
        return values[0] if values else None

    # -- shortcuts ---------------------------------------------------------

    def ancestors_of(self, node_or_key: NodeOrKey) -> NodeCollection:
        return self.where_ancestor_of(node_or_key).default_order().get()

    def ancestors_and_self(self, node_or_key: NodeOrKey) -> NodeCollection:
        return self.where_ancestor_of(node_or_key, and_self=True).default_order().get()

    def descendants_of(self, node_or_key: NodeOrKey, and_self: bool = False) -> NodeCollection:
        return self.where_descendant_of(node_or_key, and_self).default_order().get()

    def descendants_and_self(self, node_or_key: NodeOrKey) -> NodeCollection:
        return self.descendants_of(node_or_key, and_self=True)

    def leaves(self) -> NodeCollection:
        return self.where_is_leaf().default_order().get()

    def root(self) -> Optional[Node]:
        return self.where_is_root().default_order().first()
