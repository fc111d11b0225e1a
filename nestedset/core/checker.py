"""
Consistency checker for nested set trees.

Counts four classes of structural errors with read-only queries. Problems are
reported as counts, never raised. Soft-deleted rows are included because they
still occupy interval space.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from .config import TreeSchema
from .predicates import Predicate, PredicateBuilder
from .store.base import BaseRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeErrors:
    """Error counts of one tree scope."""

    oddness: int = 0
    duplicates: int = 0
    wrong_parent: int = 0
    missing_parent: int = 0

    @property
    def total(self) -> int:
        return self.oddness + self.duplicates + self.wrong_parent + self.missing_parent

    @property
    def is_broken(self) -> bool:
        return self.total > 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ConsistencyChecker:
    """Runs the error counting queries for one nested set table."""

    def __init__(self, store: BaseRecordStore, schema: TreeSchema) -> None:
        self.store = store
        self.schema = schema

    def _aliases(self, scope: Optional[Mapping[str, Any]], *names: str):
        base = PredicateBuilder(self.schema, scope)
        return [base.aliased(name) for name in names]

    @staticmethod
    def _scoped(*builders: PredicateBuilder) -> Predicate:
        """Confine every alias to the scope, or join aliases when no scope is given."""
        first = builders[0]
        if first.scope_values:
            return Predicate.all(*(b.scope() for b in builders))
        return Predicate.all(*(b.scope_join(first) for b in builders[1:]))

    def _count(self, select: str, from_clause: str, where: Predicate) -> int:
        sql = f"SELECT {select} FROM {from_clause}"
        if not where.is_empty:
            sql += f" WHERE {where.sql}"
        return int(self.store.scalar(sql, where.params) or 0)

    def count_oddness(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        """Rows with ``lft >= rgt`` or an interval of odd width."""
        (n,) = self._aliases(scope, "n")
        where = Predicate.all(
            Predicate(f"{n.lft} >= {n.rgt} OR ({n.rgt} - {n.lft}) % 2 = 0"),
            n.scope(),
        )
        return self._count("count(1)", f"{self.schema.table} AS n", where)

    def count_duplicates(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        """Pairs of rows sharing any boundary value."""
        c1, c2 = self._aliases(scope, "c1", "c2")
        where = Predicate.all(
            Predicate(f"{c1.key} < {c2.key}"),
            Predicate(
                f"{c1.lft} = {c2.lft} OR {c1.rgt} = {c2.rgt} "
                f"OR {c1.lft} = {c2.rgt} OR {c1.rgt} = {c2.lft}"
            ),
            self._scoped(c1, c2),
        )
        table = self.schema.table
        return self._count("count(1)", f"{table} AS c1, {table} AS c2", where)

    def count_wrong_parent(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        """Rows outside their parent's interval or with a row nested between them."""
        c, p, i = self._aliases(scope, "c", "p", "i")
        between = Predicate.all(
            Predicate(f"{i.key} <> {p.key}"),
            Predicate(f"{i.key} <> {c.key}"),
            Predicate(
                f"{c.lft} BETWEEN {i.lft} AND {i.rgt} "
                f"AND {i.lft} BETWEEN {p.lft} AND {p.rgt}"
            ),
            i.scope() if c.scope_values else i.scope_join(c),
        )
        table = self.schema.table
        where = Predicate.all(
            Predicate(f"{c.parent} = {p.key}"),
            Predicate(
                f"{c.lft} NOT BETWEEN {p.lft} AND {p.rgt} "
                f"OR EXISTS (SELECT 1 FROM {table} AS i WHERE {between.sql})",
                between.params,
            ),
            self._scoped(c, p),
        )
        return self._count(
            f"count(DISTINCT {c.key})",
            f"{table} AS c, {table} AS p",
            where,
        )

    def count_missing_parent(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        """Rows whose parent key does not resolve within the scope."""
        n, p = self._aliases(scope, "n", "p")
        exists_where = Predicate.all(
            Predicate(f"{n.parent} = {p.key}"),
            p.scope() if n.scope_values else p.scope_join(n),
        )
        where = Predicate.all(
            n.scope(),
            Predicate(f"{n.parent} IS NOT NULL"),
            Predicate(
                f"NOT EXISTS (SELECT 1 FROM {self.schema.table} AS p "
                f"WHERE {exists_where.sql})",
                exists_where.params,
            ),
        )
        return self._count("count(1)", f"{self.schema.table} AS n", where)

    def count_errors(self, scope: Optional[Mapping[str, Any]] = None) -> TreeErrors:
        errors = TreeErrors(
            oddness=self.count_oddness(scope),
            duplicates=self.count_duplicates(scope),
            wrong_parent=self.count_wrong_parent(scope),
            missing_parent=self.count_missing_parent(scope),
        )
        if errors.is_broken:
            logger.warning(
                "Tree %s is broken (scope=%s): %s",
                self.schema.table,
                dict(scope or {}),
                errors.to_dict(),
            )
        return errors

    def total_errors(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        return self.count_errors(scope).total

    def is_broken(self, scope: Optional[Mapping[str, Any]] = None) -> bool:
        return self.total_errors(scope) > 0
