"""
Ordered record store package.

Provides the store interface consumed by the tree engine and its SQLite
implementation.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from .base import BaseRecordStore
from .exceptions import (
    StoreConnectionError,
    StoreError,
    StoreNotFoundError,
    StoreOperationError,
    TransactionError,
)
from .factory import create_store
from .sqlite import SQLiteRecordStore

__all__ = [
    "BaseRecordStore",
    "SQLiteRecordStore",
    "create_store",
    "StoreError",
    "StoreConnectionError",
    "StoreOperationError",
    "StoreNotFoundError",
    "TransactionError",
]
