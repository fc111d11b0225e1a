"""
Nested set tree facade.

Binds a record store and a table schema and exposes every tree intent:
positioning, relationship queries, maintenance and deletion.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .checker import ConsistencyChecker, TreeErrors
from .collection import NodeCollection
from .config import EngineConfig, TreeSchema
from .deletion import HardSubtreeDeleter, SoftSubtreeDeleter, select_deleter
from .exceptions import TreeLogicError
from .interval import Node
from .mutation import IntentKind, MutationEngine, MutationResult, PendingChange
from .predicates import NodeOrKey
from .query import TreeQuery
from .rebuilder import CHILDREN_KEY, TreeRebuilder
from .store.base import BaseRecordStore
from .store.factory import create_store

logger = logging.getLogger(__name__)


class NestedSetTree:
    """Nested set operations over one table of a record store.

    ``scope`` gives default scope column values for queries and for new
    nodes; operations on a given node always use that node's own scope.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        schema: TreeSchema,
        scope: Optional[Mapping[str, Any]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.scope = dict(scope or {})
        self.clock = clock
        self.engine = MutationEngine(store, schema)
        self.checker = ConsistencyChecker(store, schema)
        self.rebuilder = TreeRebuilder(store, schema, clock)

    @classmethod
    def from_config(cls, config: EngineConfig, tree_name: str, **kwargs: Any) -> "NestedSetTree":
        """Connect the configured store and bind the named tree schema."""
        store = create_store(config.store.driver, config.store.to_driver_config())
        return cls(store, config.tree(tree_name), **kwargs)

    def install_schema(self, columns: Optional[Dict[str, str]] = None) -> bool:
        """Create the tree table and its bounds index when missing.

        Args:
            columns: Extra data columns (name -> SQL type); scope columns
                default to INTEGER
        """
        schema = self.schema
        column_defs: List[Dict[str, Any]] = [
            {"name": schema.key_column, "type": "INTEGER", "primary_key": True, "autoincrement": True},
            {"name": schema.lft_column, "type": "INTEGER", "nullable": False, "default": 0},
            {"name": schema.rgt_column, "type": "INTEGER", "nullable": False, "default": 0},
            {"name": schema.parent_column, "type": "INTEGER"},
        ]
        extra = dict(columns or {})
        for column in schema.scope_columns:
            column_defs.append({"name": column, "type": extra.pop(column, "INTEGER")})
        if schema.deleted_column:
            column_defs.append({"name": schema.deleted_column, "type": extra.pop(schema.deleted_column, "REAL")})
        for name, sql_type in extra.items():
            column_defs.append({"name": name, "type": sql_type})

        created = self.store.create_table({"name": schema.table, "columns": column_defs})
        self.store.create_index(
            schema.table, [*schema.scope_columns, schema.lft_column, schema.rgt_column, schema.parent_column]
        )
        logger.info("Installed nested set table %s", schema.table)
        return created

    # -- helpers -----------------------------------------------------------

    def scope_of(self, node: Optional[Node] = None) -> Dict[str, Any]:
        if node is None:
            return dict(self.scope)
        return self.engine.scope_of(node)

    def new_node(self, **data: Any) -> Node:
        """Build an unsaved node; scope columns default to the tree's scope."""
        return Node(data={**self.scope, **data})

    def _resolve(self, node_or_key: NodeOrKey, scope: Optional[Mapping[str, Any]] = None) -> Node:
        if isinstance(node_or_key, Node):
            return node_or_key
        return self.find_or_fail(node_or_key, scope)

    # -- positioning intents -----------------------------------------------

    def plan_append(self, node: Node, parent: Node) -> PendingChange:
        return self.engine.plan(node, IntentKind.APPEND, parent)

    def plan_prepend(self, node: Node, parent: Node) -> PendingChange:
        return self.engine.plan(node, IntentKind.PREPEND, parent)

    def plan_before(self, node: Node, target: Node) -> PendingChange:
        return self.engine.plan(node, IntentKind.BEFORE, target)

    def plan_after(self, node: Node, target: Node) -> PendingChange:
        return self.engine.plan(node, IntentKind.AFTER, target)

    def plan_root(self, node: Node) -> PendingChange:
        return self.engine.plan(node, IntentKind.ROOT)

    def plan_raw(self, node: Node, lft: int, rgt: int, parent_id: Any = None) -> PendingChange:
        """Plan explicit bounds; no other row is shifted."""
        return self.engine.plan(node, IntentKind.RAW, raw=(lft, rgt), parent_id=parent_id)

    def plan_parent(self, node: Node, parent_key: Any) -> PendingChange:
        """Plan re-parenting by key: append to that parent, or make a root for None.

        Raises:
            NodeNotFoundError: If the parent is not in the node's scope
        """
        if parent_key is None:
            return self.plan_root(node)
        parent = self.find_or_fail(parent_key, self.scope_of(node))
        return self.plan_append(node, parent)

    def apply(self, change: PendingChange) -> MutationResult:
        return self.engine.apply(change)

    def save(self, node: Node) -> Optional[MutationResult]:
        """Apply the node's pending change, insert a new node as root, or update data."""
        if node.pending is not None:
            return self.apply(node.pending)
        if not node.exists:
            return self.apply(self.plan_root(node))
        self.engine.save_data(node)
        return None

    def append_node(self, node: Node, parent: Node) -> MutationResult:
        return self.apply(self.plan_append(node, parent))

    def prepend_node(self, node: Node, parent: Node) -> MutationResult:
        return self.apply(self.plan_prepend(node, parent))

    def insert_before_node(self, node: Node, target: Node) -> MutationResult:
        return self.apply(self.plan_before(node, target))

    def insert_after_node(self, node: Node, target: Node) -> MutationResult:
        return self.apply(self.plan_after(node, target))

    def save_as_root(self, node: Node) -> MutationResult:
        return self.apply(self.plan_root(node))

    def up(self, node: Node, amount: int = 1) -> bool:
        """Move the node ``amount`` siblings towards the start; False if there are not enough."""
        sibling = (
            self._siblings_query(node)
            .where_is_before(node)
            .reversed()
            .offset(amount - 1)
            .first()
        )
        if sibling is None:
            return False
        return self.insert_before_node(node, sibling).moved

    def down(self, node: Node, amount: int = 1) -> bool:
        """Move the node ``amount`` siblings towards the end; False if there are not enough."""
        sibling = (
            self._siblings_query(node)
            .where_is_after(node)
            .default_order()
            .offset(amount - 1)
            .first()
        )
        if sibling is None:
            return False
        return self.insert_after_node(node, sibling).moved

    def create(self, attributes: Mapping[str, Any], parent: Optional[Node] = None) -> Node:
        """Create a node and, from a nested ``children`` list, its descendants.

        A ``parent_id`` attribute positions the node under that parent.
        """
        created: Optional[Node] = None
        pending: List[Tuple[Mapping[str, Any], Optional[Node]]] = [(attributes, parent)]
        while pending:
            item, item_parent = pending.pop()
            data = {k: v for k, v in item.items() if k != CHILDREN_KEY}
            has_parent_key = self.schema.parent_column in data
            parent_key = data.pop(self.schema.parent_column, None)
            if item_parent is not None:
                data = {**item_parent.scope_values(self.schema.scope_columns), **data}
            node = self.new_node(**data)

            if item_parent is not None:
                self.append_node(node, item_parent)
            elif has_parent_key:
                self.apply(self.plan_parent(node, parent_key))
            else:
                self.save(node)

            if created is None:
                created = node
            # reversed so that siblings are appended in the given order
            for child in reversed(item.get(CHILDREN_KEY) or []):
                pending.append((child, node))
        return created

    # -- query intents -----------------------------------------------------

    def query(self, scope: Optional[Mapping[str, Any]] = None) -> TreeQuery:
        return TreeQuery(self.store, self.schema, self.scope if scope is None else scope)

    def _node_query(self, node: Node) -> TreeQuery:
        return self.query(self.scope_of(node))

    def _siblings_query(self, node: Node, and_self: bool = False) -> TreeQuery:
        query = self._node_query(node)
        return query.where(query.builder.sibling_of(node, and_self))

    def find(self, key: Any, scope: Optional[Mapping[str, Any]] = None) -> Optional[Node]:
        return self.query(scope).find(key)

    def find_or_fail(self, key: Any, scope: Optional[Mapping[str, Any]] = None) -> Node:
        return self.query(scope).find_or_fail(key)

    def refresh_node(self, node: Node) -> Node:
        return self.engine.refresh_bounds(node)

    def ancestors(self, node: Node, and_self: bool = False) -> NodeCollection:
        query = self._node_query(node)
        if and_self:
            return query.ancestors_and_self(node)
        return query.ancestors_of(node)

    def descendants(self, node: Node, and_self: bool = False) -> NodeCollection:
        return self._node_query(node).descendants_of(node, and_self)

    def children(self, node: Node) -> NodeCollection:
        query = self._node_query(node)
        return query.where(query.builder.child_of(node.key)).default_order().get()

    def parent(self, node: Node) -> Optional[Node]:
        if node.parent_id is None:
            return None
        return self.find(node.parent_id, self.scope_of(node))

    def siblings(self, node: Node) -> NodeCollection:
        return self._siblings_query(node).default_order().get()

    def siblings_and_self(self, node: Node) -> NodeCollection:
        return self._siblings_query(node, and_self=True).default_order().get()

    def next_siblings(self, node: Node) -> NodeCollection:
        return self._siblings_query(node).where_is_after(node).default_order().get()

    def prev_siblings(self, node: Node) -> NodeCollection:
        return self._siblings_query(node).where_is_before(node).default_order().get()

    def next_sibling(self, node: Node) -> Optional[Node]:
        return self._siblings_query(node).where_is_after(node).default_order().first()

    def prev_sibling(self, node: Node) -> Optional[Node]:
        return self._siblings_query(node).where_is_before(node).reversed().first()

    def next_node(self, node: Node) -> Optional[Node]:
        """Next node in pre-order."""
        return self._node_query(node).where_is_after(node).default_order().first()

    def prev_node(self, node: Node) -> Optional[Node]:
        return self._node_query(node).where_is_before(node).reversed().first()

    # -- maintenance intents -----------------------------------------------

    def count_errors(self, scope: Optional[Mapping[str, Any]] = None) -> TreeErrors:
        return self.checker.count_errors(self.scope if scope is None else scope)

    def total_errors(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        return self.count_errors(scope).total

    def is_broken(self, scope: Optional[Mapping[str, Any]] = None) -> bool:
        return self.count_errors(scope).is_broken

    def fix_tree(self, scope: Optional[Mapping[str, Any]] = None) -> int:
        return self.rebuilder.fix_tree(self.scope if scope is None else scope)

    def fix_subtree(self, root: NodeOrKey) -> int:
        return self.rebuilder.fix_subtree(self._resolve(root))

    def rebuild_tree(
        self,
        data: Sequence[Dict[str, Any]],
        delete_missing: bool = False,
        scope: Optional[Mapping[str, Any]] = None,
    ) -> int:
        return self.rebuilder.rebuild_tree(
            self.scope if scope is None else scope, data, delete_missing
        )

    def rebuild_subtree(
        self, root: NodeOrKey, data: Sequence[Dict[str, Any]], delete_missing: bool = False
    ) -> int:
        return self.rebuilder.rebuild_subtree(self._resolve(root), data, delete_missing)

    # -- deletion ----------------------------------------------------------

    def delete(self, node: Node, force: bool = False) -> int:
        """Delete the node's subtree; soft when the table supports it and not forced."""
        deleter = select_deleter(self.store, self.schema, self.clock)
        if force and isinstance(deleter, SoftSubtreeDeleter):
            deleter = HardSubtreeDeleter(self.store, self.schema)
        return deleter.delete(node)

    def restore(self, node: Node) -> int:
        """Restore a soft-deleted subtree.

        Raises:
            TreeLogicError: If the table has no soft-delete column
        """
        deleter = select_deleter(self.store, self.schema, self.clock)
        if not isinstance(deleter, SoftSubtreeDeleter):
            raise TreeLogicError(
                f"Table {self.schema.table} does not support soft delete",
                operation="restore",
            )
        return deleter.restore(node)
