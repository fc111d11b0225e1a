"""
Tree rebuilder: repairs intervals from parent links and rebuilds trees from
nested data.

Both operations group rows by parent key and renumber them in pre-order with
an explicit stack. Buckets whose parent was never reached (dangling or cyclic
parent references) are re-attached to the root bucket until none remain.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .config import TreeSchema
from .exceptions import NodeNotFoundError
from .interval import Node
from .mutation import MutationEngine
from .store.base import BaseRecordStore

logger = logging.getLogger(__name__)

Dictionary = Dict[Any, List[Node]]
Scope = Mapping[str, Any]

CHILDREN_KEY = "children"


class TreeRebuilder:
    """Fixes and rebuilds nested set intervals for one table."""

    def __init__(
        self,
        store: BaseRecordStore,
        schema: TreeSchema,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.engine = MutationEngine(store, schema)
        self.clock = clock or time.time

    # -- loading -----------------------------------------------------------

    def _load(self, scope: Scope, root: Optional[Node], columns: Optional[Sequence[str]] = None) -> List[Node]:
        builder = self.engine.predicates(scope)
        where = builder.scope()
        if root is not None:
            where = where & builder.descendant_of(root)
        rows = self.store.select_where(
            self.schema.table,
            where,
            columns=columns,
            order_by=[self.schema.lft_column, self.schema.key_column],
        )
        return [Node.from_row(self.schema, row) for row in rows]

    @staticmethod
    def group_by_parent(nodes: Sequence[Node]) -> Dictionary:
        dictionary: Dictionary = {}
        for node in nodes:
            dictionary.setdefault(node.parent_id, []).append(node)
        return dictionary

    # -- fix ---------------------------------------------------------------

    def fix_tree(self, scope: Scope, root: Optional[Node] = None) -> int:
        """Recompute intervals of the scope (or of ``root``'s subtree) from parent links.

        Rows whose parent is missing become roots (children of ``root`` when
        fixing a subtree). On a scoped table a scope column left out of
        ``scope`` selects the partition where it is NULL.

        Returns:
            Number of changed nodes plus rows moved by the closing gap shift
        """
        scope = self.engine.partition(scope)
        with self.store.transaction():
            if root is not None:
                self.engine.refresh_bounds(root)
            nodes = self._load(scope, root, columns=self.schema.tree_columns)
            fixed = self.fix_nodes(scope, self.group_by_parent(nodes), root)
        logger.info("Fixed tree %s (scope=%s): %s changes", self.schema.table, dict(scope), fixed)
        return fixed

    def fix_subtree(self, root: Node) -> int:
        return self.fix_tree(self.engine.scope_of(root), root)

    def fix_nodes(self, scope: Scope, dictionary: Dictionary, parent: Optional[Node] = None) -> int:
        parent_id = parent.key if parent is not None else None
        cut = parent.lft_or_fail() + 1 if parent is not None else 1
        placed = [node for bucket in dictionary.values() for node in bucket]
        updated: List[Node] = []
        moved = 0

        cut = self._reorder(dictionary, updated, parent_id, cut)
        while dictionary:
            orphan_key = next(iter(dictionary))
            dictionary[parent_id] = dictionary.pop(orphan_key)
            cut = self._reorder(dictionary, updated, parent_id, cut)

        to_save = updated
        if parent is not None:
            grown = cut - parent.rgt_or_fail()
            if grown != 0:
                moved = self.engine.make_gap(scope, parent.rgt + 1, grown)
                parent.set_raw(parent.lft, cut, parent.parent_id)
                updated.append(parent)
                # the gap shift may have touched stored bounds of unchanged nodes
                to_save = placed + [parent]

        for node in to_save:
            self._save_bounds(node)
        return len(updated) + moved

    @staticmethod
    def _reorder(dictionary: Dictionary, updated: List[Node], parent_id: Any, cut: int) -> int:
        """Assign pre-order bounds to the bucket of ``parent_id`` and everything below it."""
        if parent_id not in dictionary:
            return cut

        # frame: bucket key, remaining nodes, node whose children are open, its lft
        stack: List[List[Any]] = [[parent_id, iter(dictionary.pop(parent_id)), None, 0]]
        while stack:
            frame = stack[-1]
            bucket_key, remaining = frame[0], frame[1]
            node = next(remaining, None)

            if node is None:
                stack.pop()
                if stack:
                    outer = stack[-1]
                    TreeRebuilder._place(outer[2], outer[3], cut, outer[0], updated)
                    cut += 1
                continue

            lft = cut
            cut += 1
            children = dictionary.pop(node.key, None)
            if children:
                frame[2], frame[3] = node, lft
                stack.append([node.key, iter(children), None, 0])
            else:
                TreeRebuilder._place(node, lft, cut, bucket_key, updated)
                cut += 1

        return cut

    @staticmethod
    def _place(node: Node, lft: int, rgt: int, parent_id: Any, updated: List[Node]) -> None:
        node.set_raw(lft, rgt, parent_id)
        if node.is_bounds_dirty():
            updated.append(node)

    def _save_bounds(self, node: Node) -> None:
        self.store.update_where(
            self.schema.table,
            self.engine.predicates().key_is(node.key),
            values={
                self.schema.lft_column: node.lft,
                self.schema.rgt_column: node.rgt,
                self.schema.parent_column: node.parent_id,
            },
        )
        node.mark_synced()

    # -- rebuild -----------------------------------------------------------

    def rebuild_tree(
        self,
        scope: Scope,
        data: Sequence[Dict[str, Any]],
        delete_missing: bool = False,
        root: Optional[Node] = None,
    ) -> int:
        """Make the scope (or ``root``'s subtree) match nested ``data``.

        Items with a key update that node, items without one create a node.
        Existing nodes absent from ``data`` are deleted (or soft-marked) when
        ``delete_missing`` is set, otherwise they keep their parent.

        Raises:
            NodeNotFoundError: If an item key is not an existing node of the
                scope (or subtree); raised before anything is written
        """
        scope = self.engine.partition(scope)
        soft = self.store.supports_soft_delete(self.schema.table, self.schema.deleted_column)

        with self.store.transaction():
            if root is not None:
                self.engine.refresh_bounds(root)
            existing = {node.key: node for node in self._load(scope, root)}
            self._check_keys(data, existing)

            dictionary: Dictionary = {}
            parent_id = root.key if root is not None else None
            pending: List[Tuple[Sequence[Dict[str, Any]], Any]] = [(data, parent_id)]
            while pending:
                items, item_parent = pending.pop()
                for item in items:
                    node = self._upsert_item(scope, item, item_parent, existing)
                    dictionary.setdefault(item_parent, []).append(node)
                    children = item.get(CHILDREN_KEY)
                    if children:
                        pending.append((children, node.key))

            if existing:
                leftover_keys = list(existing)
                builder = self.engine.predicates(scope)
                if delete_missing and not soft:
                    self.store.delete_where(
                        self.schema.table,
                        builder.scope() & builder.key_in(leftover_keys),
                        order_by=[f"{self.schema.lft_column} DESC"],
                    )
                else:
                    for node in existing.values():
                        dictionary.setdefault(node.parent_id, []).append(node)
                    if delete_missing:
                        self.store.update_where(
                            self.schema.table,
                            builder.scope() & builder.key_in(leftover_keys) & builder.active(),
                            values={self.schema.deleted_column: self.clock()},
                        )
                logger.debug(
                    "Rebuild left %s existing nodes (delete_missing=%s, soft=%s)",
                    len(leftover_keys),
                    delete_missing,
                    soft,
                )

            fixed = self.fix_nodes(scope, dictionary, root)

        logger.info(
            "Rebuilt tree %s (scope=%s): %s changes", self.schema.table, dict(scope), fixed
        )
        return fixed

    def rebuild_subtree(
        self, root: Node, data: Sequence[Dict[str, Any]], delete_missing: bool = False
    ) -> int:
        return self.rebuild_tree(self.engine.scope_of(root), data, delete_missing, root)

    def _check_keys(self, data: Sequence[Dict[str, Any]], existing: Dict[Any, Node]) -> None:
        key_column = self.schema.key_column
        seen = set()
        for item in _walk_items(data):
            if item.get(key_column) is None:
                continue
            key = self._coerce_key(item[key_column], existing)
            if key not in existing or key in seen:
                raise NodeNotFoundError(f"Node {item[key_column]!r} not found", key=item[key_column])
            seen.add(key)

    @staticmethod
    def _coerce_key(key: Any, existing: Dict[Any, Node]) -> Any:
        """Match ``'8'`` to an integer key ``8`` the way query parameters would."""
        if key in existing or not isinstance(key, str):
            return key
        try:
            as_int = int(key)
        except ValueError:
            return key
        return as_int if as_int in existing else key

    def _upsert_item(
        self, scope: Scope, item: Dict[str, Any], parent_id: Any, existing: Dict[Any, Node]
    ) -> Node:
        key_column = self.schema.key_column
        attributes = {k: v for k, v in item.items() if k not in (CHILDREN_KEY, key_column)}

        if item.get(key_column) is None:
            node = Node(data={**dict(scope), **attributes})
            node.set_raw(0, 0, parent_id)
            row = node.to_row(self.schema, with_key=False)
            node.key = self.store.insert(self.schema.table, row)
            node.exists = True
        else:
            node = existing.pop(self._coerce_key(item[key_column], existing))
            node.data.update(attributes)
            node.parent_id = parent_id
            values = {k: v for k, v in attributes.items() if k not in self.schema.tree_columns}
            values[self.schema.parent_column] = parent_id
            self.store.update_where(
                self.schema.table, self.engine.predicates().key_is(node.key), values=values
            )
        node.mark_synced()
        return node


def _walk_items(data: Sequence[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    stack: List[Dict[str, Any]] = list(reversed(data))
    while stack:
        item = stack.pop()
        yield item
        stack.extend(reversed(item.get(CHILDREN_KEY) or []))
