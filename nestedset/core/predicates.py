"""
Predicate builder for nested set relationships.

Translates tree relationships (ancestor-of, descendant-of, siblings, leaves,
depth) into SQL range predicates over the lft/rgt columns, confined to one
scope. Also provides the piecewise shift expressions used by bulk rewrites.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple, Union

from .config import TreeSchema
from .interval import Node

NodeOrKey = Union[Node, int, str]


@dataclass(frozen=True)
class Predicate:
    """SQL boolean fragment with positional ``?`` parameters.

    An empty ``sql`` means "no constraint" and is dropped when combined.
    """

    sql: str = ""
    params: Tuple[Any, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.sql

    @classmethod
    def all(cls, *predicates: Optional["Predicate"]) -> "Predicate":
        return cls._join(" AND ", predicates)

    @classmethod
    def any(cls, *predicates: Optional["Predicate"]) -> "Predicate":
        return cls._join(" OR ", predicates)

    @classmethod
    def _join(cls, glue: str, predicates: Iterable[Optional["Predicate"]]) -> "Predicate":
        parts = [p for p in predicates if p is not None and not p.is_empty]
        if not parts:
            return cls()
        if len(parts) == 1:
            return parts[0]
        sql = glue.join(f"({p.sql})" for p in parts)
        params: Tuple[Any, ...] = ()
        for p in parts:
            params += p.params
        return cls(sql, params)

    def __and__(self, other: "Predicate") -> "Predicate":
        return Predicate.all(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return Predicate.any(self, other)

    def __invert__(self) -> "Predicate":
        if self.is_empty:
            return self
        return Predicate(f"NOT ({self.sql})", self.params)


@dataclass(frozen=True)
class ShiftCase:
    """Shift values in ``[low, high]`` by ``delta``; ``high=None`` is open-ended."""

    low: int
    high: Optional[int]
    delta: int


@dataclass(frozen=True)
class Shift:
    """Piecewise column rewrite: first matching case wins, otherwise unchanged."""

    cases: Tuple[ShiftCase, ...]

    @classmethod
    def gap(cls, cut: int, height: int) -> "Shift":
        """Open (positive height) or close (negative height) a gap at ``cut``."""
        return cls((ShiftCase(cut, None, height),))

    @classmethod
    def move(
        cls, lft: int, rgt: int, start: int, end: int, height: int, distance: int
    ) -> "Shift":
        """Move the subtree ``[lft, rgt]`` by ``distance``, others in window by ``height``."""
        return cls((ShiftCase(lft, rgt, distance), ShiftCase(start, end, height)))

    def to_sql(self, column: str) -> Tuple[str, Tuple[Any, ...]]:
        whens = []
        params: Tuple[Any, ...] = ()
        for case in self.cases:
            if case.high is None:
                whens.append(f"WHEN {column} >= ? THEN {column} + ?")
                params += (case.low, case.delta)
            else:
                whens.append(f"WHEN {column} BETWEEN ? AND ? THEN {column} + ?")
                params += (case.low, case.high, case.delta)
        return f"CASE {' '.join(whens)} ELSE {column} END", params


class PredicateBuilder:
    """Builds scoped predicates for one nested set table.

    Relationship predicates accept either a materialized :class:`Node`, whose
    bounds are bound as parameters, or a bare key, in which case a scoped
    sub-select resolving the bound is embedded instead of fetching the node.
    """

    def __init__(
        self,
        schema: TreeSchema,
        scope: Optional[Mapping[str, Any]] = None,
        table: Optional[str] = None,
    ) -> None:
        self.schema = schema
        self.scope_values = dict(scope or {})
        self.table = table

    def col(self, name: str) -> str:
        return f"{self.table}.{name}" if self.table else name

    @property
    def lft(self) -> str:
        return self.col(self.schema.lft_column)

    @property
    def rgt(self) -> str:
        return self.col(self.schema.rgt_column)

    @property
    def key(self) -> str:
        return self.col(self.schema.key_column)

    @property
    def parent(self) -> str:
        return self.col(self.schema.parent_column)

    def aliased(self, alias: str) -> "PredicateBuilder":
        return PredicateBuilder(self.schema, self.scope_values, alias)

    # -- scope -------------------------------------------------------------

    def scope(self) -> Predicate:
        """Equality on every scope column; empty for unscoped trees."""
        parts = []
        for column in self.schema.scope_columns:
            if column not in self.scope_values:
                continue
            value = self.scope_values[column]
            if value is None:
                parts.append(Predicate(f"{self.col(column)} IS NULL"))
            else:
                parts.append(Predicate(f"{self.col(column)} = ?", (value,)))
        return Predicate.all(*parts)

    def active(self) -> Predicate:
        """Exclude soft-deleted rows when the schema declares a deleted column."""
        if not self.schema.deleted_column:
            return Predicate()
        return Predicate(f"{self.col(self.schema.deleted_column)} IS NULL")

    def trashed(self) -> Predicate:
        if not self.schema.deleted_column:
            return Predicate("0 = 1")
        return Predicate(f"{self.col(self.schema.deleted_column)} IS NOT NULL")

    def scope_join(self, other: "PredicateBuilder") -> Predicate:
        """Require equal scope columns between two aliases of the table."""
        return Predicate.all(
            *(
                Predicate(f"{self.col(c)} = {other.col(c)}")
                for c in self.schema.scope_columns
            )
        )

    # -- keys --------------------------------------------------------------

    def key_is(self, key: Any) -> Predicate:
        return Predicate(f"{self.key} = ?", (key,))

    def key_is_not(self, key: Any) -> Predicate:
        return Predicate(f"{self.key} <> ?", (key,))

    def key_in(self, keys: Sequence[Any]) -> Predicate:
        if not keys:
            return Predicate("0 = 1")
        marks = ", ".join("?" for _ in keys)
        return Predicate(f"{self.key} IN ({marks})", tuple(keys))

    def bound_of(self, key: Any, column: str, alias: str = "_n") -> Tuple[str, Tuple[Any, ...]]:
        """Sub-select resolving ``column`` of the node with ``key`` in this scope."""
        inner = self.aliased(alias)
        where = Predicate.all(inner.key_is(key), inner.scope())
        sql = f"(SELECT {inner.col(column)} FROM {self.schema.table} AS {alias} WHERE {where.sql})"
        return sql, where.params

    def _lft_value(self, node_or_key: NodeOrKey) -> Tuple[str, Tuple[Any, ...]]:
        if isinstance(node_or_key, Node):
            return "?", (node_or_key.lft_or_fail(),)
        return self.bound_of(node_or_key, self.schema.lft_column)

    def _rgt_value(self, node_or_key: NodeOrKey) -> Tuple[str, Tuple[Any, ...]]:
        if isinstance(node_or_key, Node):
            return "?", (node_or_key.rgt_or_fail(),)
        return self.bound_of(node_or_key, self.schema.rgt_column)

    # -- relationships -----------------------------------------------------

    def ancestor_of(self, node_or_key: NodeOrKey, and_self: bool = False) -> Predicate:
        """Rows whose interval contains the target's ``lft``."""
        value, params = self._lft_value(node_or_key)
        lt, gt = ("<=", ">=") if and_self else ("<", ">")
        return Predicate(
            f"{self.lft} {lt} {value} AND {self.rgt} {gt} {value}", params + params
        )

    def descendant_of(self, node_or_key: NodeOrKey, and_self: bool = False) -> Predicate:
        """Rows whose ``lft`` lies inside the target's interval."""
        if isinstance(node_or_key, Node):
            lft, rgt = node_or_key.bounds()
            return self.node_between(lft if and_self else lft + 1, rgt)
        low, low_params = self._lft_value(node_or_key)
        high, high_params = self._rgt_value(node_or_key)
        op = ">=" if and_self else ">"
        return Predicate(
            f"{self.lft} {op} {low} AND {self.lft} <= {high}", low_params + high_params
        )

    def node_between(self, low: int, high: int) -> Predicate:
        return Predicate(f"{self.lft} BETWEEN ? AND ?", (low, high))

    def before(self, node_or_key: NodeOrKey) -> Predicate:
        value, params = self._lft_value(node_or_key)
        return Predicate(f"{self.lft} < {value}", params)

    def after(self, node_or_key: NodeOrKey) -> Predicate:
        value, params = self._lft_value(node_or_key)
        return Predicate(f"{self.lft} > {value}", params)

    def is_leaf(self) -> Predicate:
        return Predicate(f"{self.rgt} = {self.lft} + 1")

    def has_children(self) -> Predicate:
        return Predicate(f"{self.rgt} > {self.lft} + 1")

    def is_root(self) -> Predicate:
        return Predicate(f"{self.parent} IS NULL")

    def without_root(self) -> Predicate:
        return Predicate(f"{self.parent} IS NOT NULL")

    def child_of(self, parent_key: Any) -> Predicate:
        if parent_key is None:
            return self.is_root()
        return Predicate(f"{self.parent} = ?", (parent_key,))

    def sibling_of(self, node: Node, and_self: bool = False) -> Predicate:
        same_parent = self.child_of(node.parent_id)
        if and_self or node.key is None:
            return same_parent
        return same_parent & self.key_is_not(node.key)

    # -- bulk rewrite windows ---------------------------------------------

    def gap_range(self, cut: int) -> Predicate:
        return Predicate(f"{self.lft} >= ? OR {self.rgt} >= ?", (cut, cut))

    def move_window(self, start: int, end: int) -> Predicate:
        return Predicate(
            f"{self.lft} BETWEEN ? AND ? OR {self.rgt} BETWEEN ? AND ?",
            (start, end, start, end),
        )

    # -- computed columns --------------------------------------------------

    def depth_column(self, alias: str = "depth") -> Predicate:
        """Correlated count of rows containing the outer row, minus the row itself."""
        outer = self if self.table else self.aliased(self.schema.table)
        inner = self.aliased("_d")
        where = Predicate.all(
            Predicate(f"{outer.lft} BETWEEN {inner.lft} AND {inner.rgt}"),
            inner.scope(),
            inner.scope_join(outer) if not self.scope_values else None,
        )
        return Predicate(
            f"(SELECT count(1) - 1 FROM {self.schema.table} AS _d WHERE {where.sql}) AS {alias}",
            where.params,
        )
