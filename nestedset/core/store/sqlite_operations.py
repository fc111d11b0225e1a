"""
SQLite CRUD operations for SQLite record store.

Handles insert, select, bulk update, delete and aggregate statements built
from predicates and shift expressions.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..predicates import Predicate, Shift
from .exceptions import StoreOperationError

logger = logging.getLogger(__name__)


def _where_clause(where: Optional[Predicate]) -> Tuple[str, Tuple[Any, ...]]:
    if where is None or where.is_empty:
        return "", ()
    return f" WHERE {where.sql}", where.params


class SQLiteOperations:
    """Handles SQLite CRUD operations."""

    def __init__(self, connection: sqlite3.Connection):
        """Initialize operations manager.

        Args:
            connection: SQLite connection object
        """
        self.conn = connection

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        if not self.conn:
            raise StoreOperationError("Database connection not established")
        cursor = self.conn.cursor()
        cursor.execute(sql, tuple(params))
        return cursor

    def insert(self, table_name: str, data: Dict[str, Any]) -> int:
        """Insert row into table.

        Returns:
            ID of inserted row (lastrowid)

        Raises:
            StoreOperationError: If operation fails
        """
        try:
            columns = list(data.keys())
            values = list(data.values())
            placeholders = ", ".join(["?" for _ in values])
            sql = (
                f"INSERT INTO {table_name} ({', '.join(columns)}) "
                f"VALUES ({placeholders})"
            )
            cursor = self._execute(sql, values)
            return cursor.lastrowid or 0
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to insert row: {e}") from e

    def select_where(
        self,
        table_name: str,
        where: Optional[Predicate] = None,
        columns: Optional[Sequence[str]] = None,
        extra_columns: Sequence[Predicate] = (),
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows from table.

        Raises:
            StoreOperationError: If operation fails
        """
        try:
            select_parts = list(columns) if columns else [f"{table_name}.*"]
            params: Tuple[Any, ...] = ()
            for extra in extra_columns:
                select_parts.append(extra.sql)
                params += extra.params

            where_sql, where_params = _where_clause(where)
            sql = f"SELECT {', '.join(select_parts)} FROM {table_name}{where_sql}"
            params += where_params

            if order_by:
                sql += f" ORDER BY {', '.join(order_by)}"

            # SQLite needs a LIMIT for OFFSET; -1 means unbounded
            if limit is not None or offset is not None:
                sql += " LIMIT ?"
                params += (limit if limit is not None else -1,)
                if offset is not None:
                    sql += " OFFSET ?"
                    params += (offset,)

            rows = self._execute(sql, params).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to select rows: {e}") from e

    def update_where(
        self,
        table_name: str,
        where: Optional[Predicate],
        values: Optional[Dict[str, Any]] = None,
        shifts: Optional[Dict[str, Shift]] = None,
    ) -> int:
        """Bulk update rows in table.

        Raises:
            StoreOperationError: If operation fails
        """
        set_clauses = []
        set_values: Tuple[Any, ...] = ()
        for col, val in (values or {}).items():
            set_clauses.append(f"{col} = ?")
            set_values += (val,)
        for col, shift in (shifts or {}).items():
            expr, expr_params = shift.to_sql(col)
            set_clauses.append(f"{col} = {expr}")
            set_values += expr_params
        if not set_clauses:
            return 0

        try:
            where_sql, where_params = _where_clause(where)
            sql = f"UPDATE {table_name} SET {', '.join(set_clauses)}{where_sql}"
            cursor = self._execute(sql, set_values + where_params)
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to update rows: {e}") from e

    def delete_where(self, table_name: str, where: Optional[Predicate]) -> int:
        """Delete rows from table.

        Raises:
            StoreOperationError: If operation fails
        """
        try:
            where_sql, where_params = _where_clause(where)
            cursor = self._execute(f"DELETE FROM {table_name}{where_sql}", where_params)
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to delete rows: {e}") from e

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Return the first column of the first row (None for no rows).

        Raises:
            StoreOperationError: If operation fails
        """
        try:
            row = self._execute(sql, params).fetchone()
            return row[0] if row is not None else None
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to execute query: {e}") from e

    def count_where(self, table_name: str, where: Optional[Predicate] = None) -> int:
        where_sql, where_params = _where_clause(where)
        return int(self.scalar(f"SELECT count(1) FROM {table_name}{where_sql}", where_params))

    def max_value(
        self, table_name: str, column: str, where: Optional[Predicate] = None
    ) -> Optional[Any]:
        where_sql, where_params = _where_clause(where)
        return self.scalar(f"SELECT max({column}) FROM {table_name}{where_sql}", where_params)
