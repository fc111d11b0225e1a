"""
Base record store interface.

Defines the narrow interface the tree engine needs from an ordered record
store: filtered selects, bulk updates with piecewise shift expressions,
ordered deletes, aggregates and transactions. Filters are
:class:`~nestedset.core.predicates.Predicate` fragments.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..predicates import Predicate, Shift


class BaseRecordStore(ABC):
    """Base class for all record stores.

    Stores work with tables and rows (dictionaries), not with nodes.
    ``transaction()`` is part of the interface with a default implementation
    built on ``begin_transaction`` / ``commit_transaction`` /
    ``rollback_transaction``; an inner ``transaction()`` joins the open one.
    """

    @abstractmethod
    def connect(self, config: Dict[str, Any]) -> None:
        """Establish store connection.

        Args:
            config: Driver-specific configuration dictionary

        Raises:
            StoreConnectionError: If connection fails
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        """Close store connection.

        Raises:
            StoreConnectionError: If disconnection fails
        """
        raise NotImplementedError

    @abstractmethod
    def create_table(self, schema: Dict[str, Any]) -> bool:
        """Create table if it does not exist.

        Args:
            schema: Table schema definition (name, columns)

        Returns:
            True if the statement succeeded

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    @abstractmethod
    def create_index(self, table_name: str, columns: Sequence[str], name: Optional[str] = None) -> bool:
        """Create index on ``columns`` if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def get_table_info(self, table_name: str) -> List[Dict[str, Any]]:
        """Get information about table columns.

        Returns:
            List of dictionaries (name, type, nullable, default, primary_key);
            empty when the table does not exist
        """
        raise NotImplementedError

    def supports_soft_delete(self, table_name: str, column: Optional[str]) -> bool:
        """Whether ``table_name`` carries the soft-delete ``column``."""
        if not column:
            return False
        return any(info["name"] == column for info in self.get_table_info(table_name))

    @abstractmethod
    def insert(self, table_name: str, data: Dict[str, Any]) -> int:
        """Insert row into table.

        Returns:
            ID of inserted row
        """
        raise NotImplementedError

    @abstractmethod
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
        """Select rows matching ``where``.

        Args:
            table_name: Name of the table
            where: Optional filter predicate
            columns: Optional list of column names (None = all columns)
            extra_columns: Computed columns appended to the select list
            order_by: Optional list of ORDER BY terms
            limit: Optional maximum number of rows
            offset: Optional number of rows to skip

        Returns:
            List of dictionaries, each representing a row
        """
        raise NotImplementedError

    @abstractmethod
    def update_where(
        self,
        table_name: str,
        where: Optional[Predicate],
        values: Optional[Dict[str, Any]] = None,
        shifts: Optional[Dict[str, Shift]] = None,
    ) -> int:
        """Bulk update rows matching ``where``.

        Args:
            table_name: Name of the table
            where: Filter predicate (None = every row)
            values: Plain column assignments
            shifts: Column rewrites evaluated against the pre-update row

        Returns:
            Number of affected rows
        """
        raise NotImplementedError

    @abstractmethod
    def delete_where(
        self,
        table_name: str,
        where: Optional[Predicate],
        order_by: Optional[Sequence[str]] = None,
    ) -> int:
        """Delete rows matching ``where``.

        ``order_by`` is a hint for stores that enforce constraints row by row
        (children before parents).

        Returns:
            Number of affected rows
        """
        raise NotImplementedError

    @abstractmethod
    def count_where(self, table_name: str, where: Optional[Predicate] = None) -> int:
        """Count rows matching ``where``."""
        raise NotImplementedError

    @abstractmethod
    def max_value(
        self, table_name: str, column: str, where: Optional[Predicate] = None
    ) -> Optional[Any]:
        """Maximum of ``column`` over rows matching ``where`` (None when empty)."""
        raise NotImplementedError

    @abstractmethod
    def scalar(self, sql: str, params: Tuple[Any, ...] = ()) -> Any:
        """Run a read-only query and return the first column of the first row."""
        raise NotImplementedError

    @abstractmethod
    def begin_transaction(self) -> str:
        """Begin transaction.

        Returns:
            Transaction ID (string)

        Raises:
            TransactionError: If transaction cannot be started
        """
        raise NotImplementedError

    @abstractmethod
    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit transaction started by ``begin_transaction``."""
        raise NotImplementedError

    @abstractmethod
    def rollback_transaction(self, transaction_id: str) -> bool:
        """Roll back transaction started by ``begin_transaction``."""
        raise NotImplementedError

    @property
    @abstractmethod
    def active_transaction(self) -> Optional[str]:
        """ID of the open transaction, if any."""
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator[str]:
        """Run the block atomically; joins an already open transaction."""
        if self.active_transaction is not None:
            yield self.active_transaction
            return
        transaction_id = self.begin_transaction()
        try:
            yield transaction_id
        except BaseException:
            self.rollback_transaction(transaction_id)
            raise
        self.commit_transaction(transaction_id)
