"""
SQLite transaction management for SQLite record store.

Handles transaction operations (begin, commit, rollback) on the store's single
connection. The connection runs in autocommit mode, so a transaction is an
explicit ``BEGIN IMMEDIATE`` ... ``COMMIT`` block and at most one is open.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Optional

from .exceptions import TransactionError

logger = logging.getLogger(__name__)


def _short(transaction_id: str) -> str:
    return (transaction_id[:8] + "…") if len(transaction_id) > 8 else transaction_id


class SQLiteTransactionManager:
    """Manages SQLite transactions."""

    def __init__(self, connection: sqlite3.Connection):
        """Initialize transaction manager.

        Args:
            connection: SQLite connection opened with ``isolation_level=None``
        """
        self.conn = connection
        self._active: Optional[str] = None

    @property
    def active(self) -> Optional[str]:
        return self._active

    def begin_transaction(self) -> str:
        """Begin database transaction.

        Returns:
            Transaction ID (string)

        Raises:
            TransactionError: If transaction cannot be started
        """
        if self._active is not None:
            raise TransactionError(
                f"Transaction {_short(self._active)} is already active"
            )
        try:
            transaction_id = str(uuid.uuid4())
            # Take the write lock up front so bounds read inside stay valid
            self.conn.execute("BEGIN IMMEDIATE")
            self._active = transaction_id
            logger.debug("sqlite begin_transaction tid=%s", _short(transaction_id))
            return transaction_id
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

    def _check(self, transaction_id: str) -> None:
        if transaction_id != self._active:
            logger.warning("sqlite transaction tid=%s not found", _short(transaction_id))
            raise TransactionError(f"Transaction {transaction_id} not found")

    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit database transaction.

        Raises:
            TransactionError: If transaction cannot be committed
        """
        self._check(transaction_id)
        try:
            self.conn.execute("COMMIT")
            self._active = None
            logger.debug("sqlite commit_transaction tid=%s", _short(transaction_id))
            return True
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to commit transaction: {e}") from e

    def rollback_transaction(self, transaction_id: str) -> bool:
        """Rollback database transaction.

        Raises:
            TransactionError: If transaction cannot be rolled back
        """
        self._check(transaction_id)
        try:
            self.conn.execute("ROLLBACK")
            logger.debug("sqlite rollback_transaction tid=%s", _short(transaction_id))
            return True
        except sqlite3.Error as e:
            raise TransactionError(f"Failed to rollback transaction: {e}") from e
        finally:
            self._active = None

    def close_all(self) -> None:
        """Roll back the open transaction, if any."""
        if self._active is None:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning("Rollback on close failed: %s", e)
        self._active = None
