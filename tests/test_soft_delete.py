"""
Tests for soft deletion and restoring of subtrees.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nestedset.core.config import TreeSchema
from nestedset.core.deletion import HardSubtreeDeleter, SoftSubtreeDeleter, select_deleter
from nestedset.core.exceptions import TreeLogicError


def test_soft_delete_marks_subtree(categories, find_category, assert_tree_not_broken):
    samsung = find_category("samsung")

    assert categories.delete(samsung) == 2

    assert samsung["deleted_at"] is not None
    assert find_category("galaxy") is None
    assert find_category("galaxy", with_trashed=True) is not None
    assert categories.query().only_trashed().count() == 2
    assert find_category("store").rgt == 20
    assert_tree_not_broken(categories)


def test_soft_delete_skips_already_deleted(categories, find_category):
    categories.delete(find_category("samsung"))
    samsung_stamp = find_category("samsung", with_trashed=True)["deleted_at"]

    assert categories.delete(find_category("mobile")) == 4

    assert find_category("galaxy", with_trashed=True)["deleted_at"] == samsung_stamp
    assert categories.query().where_in("id", [5, 6, 7, 8, 9, 10]).count() == 0


def test_restore_keeps_earlier_deletions(categories, find_category, assert_tree_not_broken):
    categories.delete(find_category("samsung"))
    categories.delete(find_category("mobile"))
    mobile = find_category("mobile", with_trashed=True)

    assert categories.restore(mobile) == 4

    assert mobile["deleted_at"] is None
    assert find_category("nokia") is not None
    assert find_category("samsung") is None
    assert find_category("galaxy") is None
    assert_tree_not_broken(categories)


def test_restore_of_live_node_is_noop(categories, find_category):
    assert categories.restore(find_category("mobile")) == 0


def test_force_delete_removes_trashed_rows(categories, find_category, assert_tree_not_broken):
    categories.delete(find_category("samsung"))

    assert categories.delete(find_category("mobile"), force=True) == 6

    assert find_category("samsung", with_trashed=True) is None
    assert find_category("store").rgt == 8
    assert_tree_not_broken(categories)


def test_trashed_rows_keep_their_interval(categories, find_category, assert_tree_not_broken):
    categories.delete(find_category("samsung"))
    node = categories.new_node(name="test")

    categories.insert_after_node(node, find_category("nokia"))

    assert (node.lft, node.rgt) == (11, 12)
    galaxy = find_category("galaxy", with_trashed=True)
    assert (galaxy.lft, galaxy.rgt) == (14, 15)
    assert_tree_not_broken(categories)


def test_restore_requires_soft_delete_column(menu_items):
    with pytest.raises(TreeLogicError):
        menu_items.restore(menu_items.find(2))


class TestSelectDeleter:
    def test_capable_table(self, store, categories, category_schema):
        assert isinstance(select_deleter(store, category_schema), SoftSubtreeDeleter)

    def test_schema_without_column(self, store, categories):
        schema = TreeSchema(table="categories")
        assert isinstance(select_deleter(store, schema), HardSubtreeDeleter)

    def test_table_without_column(self, store, menu_items):
        schema = TreeSchema(table="menu_items", scope_columns=["menu_id"], deleted_column="deleted_at")
        assert isinstance(select_deleter(store, schema), HardSubtreeDeleter)
