"""
Core functionality for nested set trees.

This module contains the interval model, predicate builder, mutation engine,
consistency checker, rebuilder and the tree facade.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from .checker import ConsistencyChecker, TreeErrors
from .collection import NodeCollection
from .config import EngineConfig, StoreConfig, TreeSchema, load_config, save_config, validate_config
from .deletion import HardSubtreeDeleter, SoftSubtreeDeleter, select_deleter
from .exceptions import (
    BoundsNotSetError,
    ConfigurationError,
    NestedSetError,
    NodeNotFoundError,
    TreeLogicError,
)
from .interval import Node
from .mutation import ChangeState, IntentKind, MutationEngine, MutationResult, PendingChange
from .predicates import Predicate, PredicateBuilder, Shift
from .query import TreeQuery
from .rebuilder import TreeRebuilder
from .tree import NestedSetTree

__all__ = [
    "BoundsNotSetError",
    "ChangeState",
    "ConfigurationError",
    "ConsistencyChecker",
    "EngineConfig",
    "HardSubtreeDeleter",
    "IntentKind",
    "MutationEngine",
    "MutationResult",
    "NestedSetError",
    "NestedSetTree",
    "Node",
    "NodeCollection",
    "NodeNotFoundError",
    "PendingChange",
    "Predicate",
    "PredicateBuilder",
    "Shift",
    "SoftSubtreeDeleter",
    "StoreConfig",
    "TreeErrors",
    "TreeLogicError",
    "TreeQuery",
    "TreeRebuilder",
    "TreeSchema",
    "load_config",
    "save_config",
    "select_deleter",
    "validate_config",
]
