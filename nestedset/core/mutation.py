"""
Mutation engine for nested set trees.

Positioning a node is a two step protocol: ``plan`` validates the intent and
records it as the node's single :class:`PendingChange`, ``apply`` turns it
into bulk interval rewrites inside one store transaction and re-reads the
affected bounds. Change states go ``PENDING -> APPLIED -> SYNCED``.

Every structural change reduces to one of two bulk updates: opening or
closing a gap at a cut point, or rotating a node's interval past a window of
its neighbours. Both are a single ``UPDATE`` whose ``CASE`` expression is
evaluated against pre-update values.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import TreeSchema
from .exceptions import NodeNotFoundError, TreeLogicError
from .interval import Node
from .predicates import PredicateBuilder, Shift
from .store.base import BaseRecordStore

logger = logging.getLogger(__name__)

Scope = Mapping[str, Any]


class IntentKind(str, Enum):
    """Positioning intent of a pending change."""

    ROOT = "root"
    APPEND = "append"
    PREPEND = "prepend"
    BEFORE = "before"
    AFTER = "after"
    RAW = "raw"


class ChangeState(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    SYNCED = "synced"


# Intents whose target becomes the parent
_PARENT_INTENTS = (IntentKind.APPEND, IntentKind.PREPEND)
# Intents whose target becomes a sibling
_SIBLING_INTENTS = (IntentKind.BEFORE, IntentKind.AFTER)


@dataclass
class PendingChange:
    """A validated, not yet applied positioning request for one node."""

    node: Node
    kind: IntentKind
    target: Optional[Node] = None
    raw_bounds: Optional[Tuple[int, int]] = None
    parent_id: Any = None
    state: ChangeState = ChangeState.PENDING

    @property
    def is_superseded(self) -> bool:
        return self.node.pending is not self and self.state == ChangeState.PENDING


@dataclass
class MutationResult:
    """Outcome of applying a change.

    ``moved`` is true when the node's bounds or parent changed, including a
    fresh insert.
    """

    change: PendingChange
    moved: bool
    affected_rows: int = 0

    @property
    def node(self) -> Node:
        return self.change.node


class MutationEngine:
    """Plans and applies structural changes for one nested set table."""

    def __init__(self, store: BaseRecordStore, schema: TreeSchema) -> None:
        self.store = store
        self.schema = schema

    # -- helpers -----------------------------------------------------------

    def predicates(self, scope: Optional[Scope] = None) -> PredicateBuilder:
        return PredicateBuilder(self.schema, scope)

    def scope_of(self, node: Node) -> Dict[str, Any]:
        return node.scope_values(self.schema.scope_columns)

    def partition(self, scope: Optional[Scope]) -> Dict[str, Any]:
        """Complete scope values; a scope column missing from ``scope`` selects NULL."""
        scope = scope or {}
        return {column: scope.get(column) for column in self.schema.scope_columns}

    def _check_same_scope(self, node: Node, target: Node) -> None:
        for column in self.schema.scope_columns:
            target_value = target.data.get(column)
            if not node.exists and column not in node.data:
                node.data[column] = target_value
            elif node.data.get(column) != target_value:
                raise TreeLogicError(
                    "Nodes must be in the same scope",
                    operation="scope",
                    details={"column": column, "node": node.key, "target": target.key},
                )

    def _validate(self, node: Node, kind: IntentKind, target: Optional[Node]) -> None:
        if target is None:
            if kind in _PARENT_INTENTS or kind in _SIBLING_INTENTS:
                raise TreeLogicError(f"Intent '{kind.value}' requires a target node", operation=kind.value)
            return
        if not target.exists or not target.has_bounds():
            raise TreeLogicError("Target node must exist", operation=kind.value)
        self._check_same_scope(node, target)
        if node.exists and (
            target is node
            or target.key == node.key
            or target.is_self_or_descendant_of(node)
        ):
            raise TreeLogicError(
                "Node must not be a descendant of itself",
                operation=kind.value,
                details={"node": node.key, "target": target.key},
            )

    # -- plan / apply ------------------------------------------------------

    def plan(
        self,
        node: Node,
        kind: IntentKind,
        target: Optional[Node] = None,
        raw: Optional[Tuple[int, int]] = None,
        parent_id: Any = None,
    ) -> PendingChange:
        """Validate an intent and make it the node's single pending change.

        A raw intent writes ``raw`` bounds and ``parent_id`` as given.

        Raises:
            TreeLogicError: If the target is missing, in another scope, or is
                the node itself or one of its descendants
        """
        kind = IntentKind(kind)
        if kind == IntentKind.RAW:
            if raw is None:
                raise TreeLogicError("Raw intent requires bounds", operation="raw")
        else:
            self._validate(node, kind, target)
            if kind == IntentKind.ROOT:
                parent_id = None
            elif kind in _PARENT_INTENTS:
                parent_id = target.key
            else:
                parent_id = target.parent_id

        change = PendingChange(
            node=node, kind=kind, target=target, raw_bounds=raw, parent_id=parent_id
        )
        node.pending = change
        return change

    def apply(self, change: PendingChange) -> MutationResult:
        """Apply a pending change atomically and sync bounds from the store.

        Raises:
            TreeLogicError: If the change is not pending, was superseded by a
                newer plan, or became invalid since planning
            NodeNotFoundError: If the target vanished from the store
        """
        if change.state != ChangeState.PENDING:
            raise TreeLogicError(
                f"Change is {change.state.value}, not pending", operation="apply"
            )
        if change.is_superseded:
            raise TreeLogicError(
                "Change was superseded by a newer plan", operation="apply"
            )

        node = change.node
        scope = self.scope_of(node)
        affected = 0

        with self.store.transaction():
            if node.exists:
                self.refresh_bounds(node)
            before = node.snapshot() if node.exists else None
            if change.target is not None:
                self.refresh_bounds(change.target)
                self._validate(node, change.kind, change.target)

            if change.kind == IntentKind.RAW:
                node.lft, node.rgt = change.raw_bounds
            else:
                position = self._position(change, scope)
                if not node.exists and change.kind == IntentKind.ROOT:
                    node.lft, node.rgt = position, position + 1
                elif not node.exists:
                    affected += self.insert_node(scope, node, position)
                else:
                    affected += self.move_node(scope, node.key, position)
                    self.refresh_bounds(node)
            node.parent_id = change.parent_id
            change.state = ChangeState.APPLIED

            self._persist(node)
            moved = before is None or node.snapshot() != before

            if change.target is not None:
                self.refresh_bounds(change.target)

        node.pending = None
        change.state = ChangeState.SYNCED
        logger.debug(
            "Applied %s for node %s: moved=%s affected=%s",
            change.kind.value,
            node.key,
            moved,
            affected,
        )
        return MutationResult(change=change, moved=moved, affected_rows=affected)

    def _position(self, change: PendingChange, scope: Scope) -> int:
        target = change.target
        if change.kind == IntentKind.ROOT:
            return self.lower_bound(scope) + 1
        if change.kind == IntentKind.APPEND:
            return target.rgt_or_fail()
        if change.kind == IntentKind.PREPEND:
            return target.lft_or_fail() + 1
        if change.kind == IntentKind.BEFORE:
            return target.lft_or_fail()
        return target.rgt_or_fail() + 1

    def _persist(self, node: Node) -> None:
        if node.exists:
            values = node.to_row(self.schema, with_key=False)
            self.store.update_where(
                self.schema.table, self.predicates().key_is(node.key), values=values
            )
        else:
            row = node.to_row(self.schema, with_key=True)
            new_key = self.store.insert(self.schema.table, row)
            if node.key is None:
                node.key = new_key
            node.exists = True
        node.mark_synced()

    def save_data(self, node: Node) -> int:
        """Persist non-tree columns of an existing node."""
        values = {
            k: v for k, v in node.data.items() if k not in self.schema.tree_columns and k != "depth"
        }
        if not values:
            return 0
        return self.store.update_where(
            self.schema.table, self.predicates().key_is(node.key), values=values
        )

    # -- bulk rewrites -----------------------------------------------------

    def make_gap(self, scope: Scope, cut: int, height: int) -> int:
        """Shift every boundary ``>= cut`` by ``height`` (negative closes a gap)."""
        builder = self.predicates(self.partition(scope))
        shift = Shift.gap(cut, height)
        affected = self.store.update_where(
            self.schema.table,
            builder.scope() & builder.gap_range(cut),
            shifts={self.schema.lft_column: shift, self.schema.rgt_column: shift},
        )
        logger.debug("make_gap cut=%s height=%s affected=%s", cut, height, affected)
        return affected

    def move_node(self, scope: Scope, key: Any, position: int) -> int:
        """Move the node's interval so that it starts at ``position``.

        Returns:
            Number of rows rewritten (0 when the node is already in place)

        Raises:
            NodeNotFoundError: If ``key`` is not in the scope
            TreeLogicError: If ``position`` lies strictly inside the node
        """
        data = self.get_node_data(self.partition(scope), key, required=True)
        lft = data[self.schema.lft_column]
        rgt = data[self.schema.rgt_column]

        if lft < position <= rgt:
            raise TreeLogicError("Cannot move node into itself", operation="move")

        start = min(lft, position)
        end = max(rgt, position - 1)
        height = rgt - lft + 1
        distance = end - start + 1 - height

        if distance == 0:
            return 0

        if position > lft:
            height = -height
        else:
            distance = -distance

        builder = self.predicates(self.partition(scope))
        shift = Shift.move(lft, rgt, start, end, height, distance)
        affected = self.store.update_where(
            self.schema.table,
            builder.scope() & builder.move_window(start, end),
            shifts={self.schema.lft_column: shift, self.schema.rgt_column: shift},
        )
        logger.debug(
            "move_node key=%s position=%s window=[%s, %s] affected=%s",
            key,
            position,
            start,
            end,
            affected,
        )
        return affected

    def insert_node(self, scope: Scope, node: Node, position: int) -> int:
        """Open a gap at ``position`` and place the new node in it."""
        height = node.height()
        affected = self.make_gap(scope, position, height)
        node.lft = position
        node.rgt = position + height - 1
        return affected

    # -- reads -------------------------------------------------------------

    def lower_bound(self, scope: Scope) -> int:
        """Largest right boundary in the scope, 0 for an empty scope."""
        builder = self.predicates(self.partition(scope))
        value = self.store.max_value(
            self.schema.table, self.schema.rgt_column, builder.scope()
        )
        return int(value or 0)

    def get_node_data(
        self, scope: Scope, key: Any, required: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Fetch the tree columns of ``key`` in the scope.

        Raises:
            NodeNotFoundError: If ``required`` and the key does not resolve
        """
        builder = self.predicates(scope)
        rows = self.store.select_where(
            self.schema.table,
            builder.key_is(key) & builder.scope(),
            columns=[
                self.schema.lft_column,
                self.schema.rgt_column,
                self.schema.parent_column,
            ],
            limit=1,
        )
        if not rows:
            if required:
                raise NodeNotFoundError(f"Node {key!r} not found", key=key)
            return None
        return rows[0]

    def refresh_bounds(self, node: Node) -> Node:
        """Re-read ``lft``, ``rgt`` and parent of a persisted node."""
        data = self.get_node_data(self.scope_of(node), node.key, required=True)
        node.set_raw(
            data[self.schema.lft_column],
            data[self.schema.rgt_column],
            data[self.schema.parent_column],
        )
        node.mark_synced()
        return node
