"""
SQLite record store implementation.

Works with tables, rows and predicate filters. A single connection in
autocommit mode is shared by plain statements and explicit transactions, so
rows written inside a transaction are visible to reads in the same block.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..predicates import Predicate, Shift
from .base import BaseRecordStore
from .exceptions import StoreConnectionError, StoreOperationError
from .sqlite_operations import SQLiteOperations
from .sqlite_transactions import SQLiteTransactionManager

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class SQLiteRecordStore(BaseRecordStore):
    """SQLite record store.

    All operations are table-level; rows are returned as dictionaries.
    """

    def __init__(self) -> None:
        """Initialize SQLite store."""
        self.conn: Optional[sqlite3.Connection] = None
        self.db_path: Optional[str] = None
        self._transaction_manager: Optional[SQLiteTransactionManager] = None
        self._operations: Optional[SQLiteOperations] = None

    def connect(self, config: Dict[str, Any]) -> None:
        """Establish SQLite connection.

        Args:
            config: Configuration dict with 'path' key pointing to database
                file (or ':memory:'), optional 'busy_timeout_ms' and
                'journal_mode'

        Raises:
            StoreConnectionError: If connection fails
        """
        if "path" not in config:
            raise StoreConnectionError("SQLite store requires 'path' in config")

        try:
            path = str(config["path"])
            if path != MEMORY_PATH:
                db_path = Path(path).resolve()
                db_path.parent.mkdir(parents=True, exist_ok=True)
                path = str(db_path)
            self.db_path = path
            logger.info("SQLite store connecting to db_path=%s", self.db_path)

            self.conn = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level=None
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            busy_timeout = int(config.get("busy_timeout_ms", 30000))
            try:
                self.conn.execute(f"PRAGMA busy_timeout = {busy_timeout}")
            except sqlite3.Error as e:
                logger.warning("Could not set busy_timeout: %s", e)
            journal_mode = str(config.get("journal_mode", "WAL")).upper()
            if self.db_path != MEMORY_PATH:
                try:
                    self.conn.execute(f"PRAGMA journal_mode = {journal_mode}")
                except sqlite3.Error as e:
                    logger.warning(
                        "Failed to set journal mode %s for database %s: %s",
                        journal_mode,
                        self.db_path,
                        e,
                    )

            self._transaction_manager = SQLiteTransactionManager(self.conn)
            self._operations = SQLiteOperations(self.conn)
        except (OSError, sqlite3.Error) as e:
            raise StoreConnectionError(f"Failed to connect to database: {e}") from e

    def disconnect(self) -> None:
        """Close SQLite connection.

        Raises:
            StoreConnectionError: If disconnection fails
        """
        try:
            if self._transaction_manager:
                self._transaction_manager.close_all()
            if self.conn:
                self.conn.close()
                self.conn = None
            self._operations = None
            self._transaction_manager = None
        except sqlite3.Error as e:
            raise StoreConnectionError(f"Failed to disconnect: {e}") from e

    def _ops(self) -> SQLiteOperations:
        if not self._operations:
            raise StoreOperationError("Operations manager not initialized")
        return self._operations

    def _tm(self) -> SQLiteTransactionManager:
        if not self._transaction_manager:
            raise StoreOperationError("Transaction manager not initialized")
        return self._transaction_manager

    def create_table(self, schema: Dict[str, Any]) -> bool:
        """Create database table.

        Args:
            schema: Table schema definition with keys:
                - name: Table name
                - columns: List of column definitions (name, type, nullable,
                  default, primary_key, autoincrement)

        Returns:
            True if table was created successfully

        Raises:
            StoreOperationError: If operation fails
        """
        if not self.conn:
            raise StoreOperationError("Database connection not established")

        table_name = schema.get("name")
        if not table_name:
            raise StoreOperationError("Table name is required in schema")
        columns = schema.get("columns", [])
        if not columns:
            raise StoreOperationError("At least one column is required")

        column_defs = []
        for col in columns:
            col_def = f"{col['name']} {col.get('type', 'TEXT')}"
            if col.get("primary_key", False):
                col_def += " PRIMARY KEY"
                if col.get("autoincrement", False):
                    col_def += " AUTOINCREMENT"
            if not col.get("nullable", True):
                col_def += " NOT NULL"
            default = col.get("default")
            if default is not None:
                if isinstance(default, str):
                    col_def += f" DEFAULT '{default}'"
                else:
                    col_def += f" DEFAULT {default}"
            column_defs.append(col_def)

        try:
            sql = f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(column_defs)})"
            self.conn.execute(sql)
            return True
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to create table: {e}") from e

    def create_index(
        self, table_name: str, columns: Sequence[str], name: Optional[str] = None
    ) -> bool:
        """Create index if it does not exist.

        Raises:
            StoreOperationError: If operation fails
        """
        if not self.conn:
            raise StoreOperationError("Database connection not established")
        index_name = name or f"idx_{table_name}_{'_'.join(c.strip('_') for c in columns)}"
        try:
            self.conn.execute(
                f"CREATE INDEX IF NOT EXISTS {index_name} "
                f"ON {table_name} ({', '.join(columns)})"
            )
            return True
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to create index: {e}") from e

    def get_table_info(self, table_name: str) -> List[Dict[str, Any]]:
        """Get information about table columns.

        Raises:
            StoreOperationError: If operation fails
        """
        if not self.conn:
            raise StoreOperationError("Database connection not established")
        try:
            rows = self.conn.execute(f"PRAGMA table_info({table_name})").fetchall()
            return [
                {
                    "name": row[1],
                    "type": row[2],
                    "nullable": not row[3],
                    "default": row[4],
                    "primary_key": bool(row[5]),
                }
                for row in rows
            ]
        except sqlite3.Error as e:
            raise StoreOperationError(f"Failed to get table info: {e}") from e

    def insert(self, table_name: str, data: Dict[str, Any]) -> int:
        """Insert row into table."""
        return self._ops().insert(table_name, data)

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
        """Select rows from table."""
        return self._ops().select_where(
            table_name, where, columns, extra_columns, order_by, limit, offset
        )

    def update_where(
        self,
        table_name: str,
        where: Optional[Predicate],
        values: Optional[Dict[str, Any]] = None,
        shifts: Optional[Dict[str, Shift]] = None,
    ) -> int:
        """Bulk update rows in table."""
        return self._ops().update_where(table_name, where, values, shifts)

    def delete_where(
        self,
        table_name: str,
        where: Optional[Predicate],
        order_by: Optional[Sequence[str]] = None,
    ) -> int:
        """Delete rows from table.

        SQLite checks foreign keys at statement end, so the order hint is not
        needed and a plain DELETE is issued.
        """
        return self._ops().delete_where(table_name, where)

    def count_where(self, table_name: str, where: Optional[Predicate] = None) -> int:
        return self._ops().count_where(table_name, where)

    def max_value(
        self, table_name: str, column: str, where: Optional[Predicate] = None
    ) -> Optional[Any]:
        return self._ops().max_value(table_name, column, where)

    def scalar(self, sql: str, params: Tuple[Any, ...] = ()) -> Any:
        return self._ops().scalar(sql, params)

    def begin_transaction(self) -> str:
        """Begin database transaction.

        Raises:
            TransactionError: If transaction cannot be started
        """
        return self._tm().begin_transaction()

    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit database transaction.

        Raises:
            TransactionError: If transaction cannot be committed
        """
        return self._tm().commit_transaction(transaction_id)

    def rollback_transaction(self, transaction_id: str) -> bool:
        """Rollback database transaction.

        Raises:
            TransactionError: If transaction cannot be rolled back
        """
        return self._tm().rollback_transaction(transaction_id)

    @property
    def active_transaction(self) -> Optional[str]:
        if not self._transaction_manager:
            return None
        return self._transaction_manager.active
