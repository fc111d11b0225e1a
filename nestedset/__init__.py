"""
Nested set tree maintenance

Stores hierarchies as nested intervals in an ordered record store and keeps
them consistent under inserts, moves, deletes and repairs.

Can be used as a library on top of any store implementing the record store
interface; a SQLite store is included.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

__version__ = "1.0.0"
__author__ = "Vasiliy Zdanovskiy"
__email__ = "vasilyvz@gmail.com"

from .core import (
    ConsistencyChecker,
    EngineConfig,
    IntentKind,
    MutationResult,
    NestedSetError,
    NestedSetTree,
    Node,
    NodeCollection,
    NodeNotFoundError,
    PendingChange,
    TreeErrors,
    TreeLogicError,
    TreeQuery,
    TreeSchema,
)
from .core.store import SQLiteRecordStore, create_store

__all__ = [
    "ConsistencyChecker",
    "EngineConfig",
    "IntentKind",
    "MutationResult",
    "NestedSetError",
    "NestedSetTree",
    "Node",
    "NodeCollection",
    "NodeNotFoundError",
    "PendingChange",
    "SQLiteRecordStore",
    "TreeErrors",
    "TreeLogicError",
    "TreeQuery",
    "TreeSchema",
    "create_store",
]
