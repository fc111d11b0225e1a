"""
Pytest fixtures for nested set tree testing.

Provides a SQLite store in a temporary directory, the ``categories`` tree
(soft-delete capable) and the scoped ``menu_items`` tree.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nestedset.core.config import TreeSchema
from nestedset.core.store import create_store
from nestedset.core.tree import NestedSetTree

# store
# ├── notebooks
# │   ├── apple
# │   └── lenovo
# └── mobile
#     ├── nokia
#     ├── samsung
#     │   └── galaxy
#     ├── sony
#     └── lenovo
# store_2
CATEGORY_ROWS = [
    {"id": 1, "name": "store", "_lft": 1, "_rgt": 20, "parent_id": None},
    {"id": 2, "name": "notebooks", "_lft": 2, "_rgt": 7, "parent_id": 1},
    {"id": 3, "name": "apple", "_lft": 3, "_rgt": 4, "parent_id": 2},
    {"id": 4, "name": "lenovo", "_lft": 5, "_rgt": 6, "parent_id": 2},
    {"id": 5, "name": "mobile", "_lft": 8, "_rgt": 19, "parent_id": 1},
    {"id": 6, "name": "nokia", "_lft": 9, "_rgt": 10, "parent_id": 5},
    {"id": 7, "name": "samsung", "_lft": 11, "_rgt": 14, "parent_id": 5},
    {"id": 8, "name": "galaxy", "_lft": 12, "_rgt": 13, "parent_id": 7},
    {"id": 9, "name": "sony", "_lft": 15, "_rgt": 16, "parent_id": 5},
    {"id": 10, "name": "lenovo", "_lft": 17, "_rgt": 18, "parent_id": 5},
    {"id": 11, "name": "store_2", "_lft": 21, "_rgt": 22, "parent_id": None},
]

MENU_ITEM_ROWS = [
    {"id": 1, "menu_id": 1, "_lft": 1, "_rgt": 2, "parent_id": None, "title": "menu item 1"},
    {"id": 2, "menu_id": 1, "_lft": 3, "_rgt": 6, "parent_id": None, "title": "menu item 2"},
    {"id": 5, "menu_id": 1, "_lft": 4, "_rgt": 5, "parent_id": 2, "title": "menu item 3"},
    {"id": 3, "menu_id": 2, "_lft": 1, "_rgt": 2, "parent_id": None, "title": "menu item 1"},
    {"id": 4, "menu_id": 2, "_lft": 3, "_rgt": 6, "parent_id": None, "title": "menu item 2"},
    {"id": 6, "menu_id": 2, "_lft": 4, "_rgt": 5, "parent_id": 4, "title": "menu item 3"},
]

NO_ERRORS = {"oddness": 0, "duplicates": 0, "wrong_parent": 0, "missing_parent": 0}


class SteppingClock:
    """Deterministic clock: every call is one second later than the previous."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def store(tmp_path):
    """Create SQLite store in a temporary directory."""
    store = create_store("sqlite", {"path": str(tmp_path / "tree.db")})
    yield store
    store.disconnect()


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def category_schema():
    return TreeSchema(table="categories", deleted_column="deleted_at")


@pytest.fixture
def categories(store, category_schema, clock):
    """Categories tree loaded with the reference data."""
    tree = NestedSetTree(store, category_schema, clock=clock)
    tree.install_schema({"name": "TEXT"})
    for row in CATEGORY_ROWS:
        store.insert(category_schema.table, dict(row))
    return tree


@pytest.fixture
def menu_schema():
    return TreeSchema(table="menu_items", scope_columns=["menu_id"])


@pytest.fixture
def menu_items(store, menu_schema):
    """Menu items tree: two independent forests partitioned by ``menu_id``."""
    tree = NestedSetTree(store, menu_schema)
    tree.install_schema({"title": "TEXT"})
    for row in MENU_ITEM_ROWS:
        store.insert(menu_schema.table, dict(row))
    return tree


@pytest.fixture
def assert_tree_not_broken():
    """Return a checker asserting that every error count of a tree scope is zero."""

    def _assert(tree, scope=None):
        errors = tree.count_errors(scope)
        assert errors.to_dict() == NO_ERRORS, f"Tree {tree.schema.table} is broken"

    return _assert


@pytest.fixture
def find_category(categories):
    """Return a lookup of a category by name (first in tree order)."""

    def _find(name, with_trashed=False):
        query = categories.query().where("name", name).default_order()
        if with_trashed:
            query = query.with_trashed()
        return query.first()

    return _find
