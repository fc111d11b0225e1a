"""
Subtree deletion strategies.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Union

from .config import TreeSchema
from .interval import Node
from .mutation import MutationEngine
from .predicates import Predicate
from .store.base import BaseRecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class HardSubtreeDeleter:
    """Removes a node with its descendants and closes the interval gap."""

    def __init__(self, store: BaseRecordStore, schema: TreeSchema) -> None:
        self.store = store
        self.schema = schema
        self.engine = MutationEngine(store, schema)

    def delete(self, node: Node) -> int:
        """Delete the subtree rooted at ``node``.

        Returns:
            Number of deleted rows
        """
        scope = self.engine.scope_of(node)
        builder = self.engine.predicates(scope)
        with self.store.transaction():
            self.engine.refresh_bounds(node)
            lft, rgt = node.bounds()
            deleted = self.store.delete_where(
                self.schema.table,
                builder.scope() & builder.node_between(lft, rgt),
                order_by=[f"{self.schema.lft_column} DESC"],
            )
            self.engine.make_gap(scope, rgt + 1, -(rgt - lft + 1))
        logger.info("Deleted subtree of node %s: %s rows", node.key, deleted)
        node.reset()
        return deleted


class SoftSubtreeDeleter:
    """Marks a node and its live descendants as deleted; intervals stay allocated."""

    def __init__(
        self,
        store: BaseRecordStore,
        schema: TreeSchema,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.engine = MutationEngine(store, schema)
        self.clock = clock or time.time

    @property
    def column(self) -> str:
        return self.schema.deleted_column

    def delete(self, node: Node) -> int:
        """Stamp the deletion time on the subtree rows that are not deleted yet."""
        builder = self.engine.predicates(self.engine.scope_of(node))
        stamp = self.clock()
        with self.store.transaction():
            self.engine.refresh_bounds(node)
            marked = self.store.update_where(
                self.schema.table,
                builder.scope()
                & builder.descendant_of(node, and_self=True)
                & builder.active(),
                values={self.column: stamp},
            )
        if node.data.get(self.column) is None:
            node.data[self.column] = stamp
        logger.info("Soft-deleted subtree of node %s: %s rows", node.key, marked)
        return marked

    def restore(self, node: Node) -> int:
        """Clear the mark on rows of the subtree deleted together with or after ``node``."""
        builder = self.engine.predicates(self.engine.scope_of(node))
        with self.store.transaction():
            rows = self.store.select_where(
                self.schema.table,
                builder.key_is(node.key) & builder.scope(),
                columns=[self.column],
                limit=1,
            )
            deleted_at = rows[0][self.column] if rows else None
            if deleted_at is None:
                return 0
            self.engine.refresh_bounds(node)
            lft, rgt = node.bounds()
            restored = self.store.update_where(
                self.schema.table,
                builder.scope()
                & builder.node_between(lft, rgt)
                & Predicate(f"{self.column} >= ?", (deleted_at,)),
                values={self.column: None},
            )
        node.data[self.column] = None
        logger.info("Restored subtree of node %s: %s rows", node.key, restored)
        return restored


SubtreeDeleter = Union[HardSubtreeDeleter, SoftSubtreeDeleter]


def select_deleter(
    store: BaseRecordStore, schema: TreeSchema, clock: Optional[Clock] = None
) -> SubtreeDeleter:
    """Pick the deletion strategy from the store's declared capability."""
    if store.supports_soft_delete(schema.table, schema.deleted_column):
        return SoftSubtreeDeleter(store, schema, clock)
    return HardSubtreeDeleter(store, schema)
