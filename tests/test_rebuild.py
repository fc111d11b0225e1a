"""
Tests for fixing intervals from parent links and rebuilding from nested data.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nestedset.core.config import TreeSchema
from nestedset.core.exceptions import NodeNotFoundError
from nestedset.core.predicates import Predicate
from nestedset.core.tree import NestedSetTree


def corrupt(store, key, **values):
    store.update_where("categories", Predicate("id = ?", (key,)), values=values)


class TestFix:
    def test_fix_tree(self, store, categories, assert_tree_not_broken):
        corrupt(store, 5, _lft=14)
        corrupt(store, 8, parent_id=2)
        corrupt(store, 11, _lft=20)
        corrupt(store, 2, parent_id=24)

        assert categories.fix_tree() > 0

        assert_tree_not_broken(categories)
        assert categories.find(8).parent_id == 2
        assert categories.find(2).parent_id is None

    def test_fix_valid_tree_changes_nothing(self, categories):
        assert categories.fix_tree() == 0

    def test_fix_subtree(self, store, categories, assert_tree_not_broken):
        corrupt(store, 8, _lft=11)

        assert categories.fix_subtree(5) == 1

        assert_tree_not_broken(categories)
        assert categories.find(8).lft == 12

    def test_fix_subtree_grows_root(self, store, categories, assert_tree_not_broken):
        # mobile is too narrow for its children; galaxy moves under nokia
        corrupt(store, 5, _rgt=17)
        corrupt(store, 8, parent_id=6)

        assert categories.fix_subtree(categories.find(5)) > 0

        assert_tree_not_broken(categories)
        assert (categories.find(6).lft, categories.find(6).rgt) == (9, 12)
        assert (categories.find(10).lft, categories.find(10).rgt) == (17, 18)
        assert categories.find(5).rgt == 19
        assert categories.find(11).lft == 23

    def test_fix_breaks_cycles(self, store, categories, assert_tree_not_broken):
        corrupt(store, 2, parent_id=3)

        categories.fix_tree()

        assert_tree_not_broken(categories)
        assert categories.find(2).parent_id is None
        assert categories.find(3).parent_id == 2

    def test_fix_includes_soft_deleted_rows(self, store, categories, find_category, assert_tree_not_broken):
        categories.delete(find_category("samsung"))
        corrupt(store, 8, _lft=30, _rgt=31)

        categories.fix_tree()

        assert_tree_not_broken(categories)
        galaxy = categories.query().with_trashed().find(8)
        assert (galaxy.lft, galaxy.rgt) == (12, 13)

    def test_deep_chain(self, store, categories):
        depth = 1500
        with store.transaction():
            store.delete_where("categories", None)
            for key in range(1, depth + 1):
                store.insert(
                    "categories",
                    {"id": key, "name": f"n{key}", "parent_id": key - 1 if key > 1 else None},
                )

        assert categories.fix_tree() == depth

        assert (categories.find(1).lft, categories.find(1).rgt) == (1, 2 * depth)
        assert (categories.find(depth).lft, categories.find(depth).rgt) == (depth, depth + 1)


class TestRebuild:
    def test_rebuild_tree(self, categories, find_category, assert_tree_not_broken):
        fixed = categories.rebuild_tree(
            [
                {
                    "id": 1,
                    "children": [
                        {"id": 10},
                        {"id": 3, "name": "apple v2", "children": [{"name": "new node"}]},
                        {"id": 2},
                    ],
                }
            ]
        )

        assert fixed > 0
        assert_tree_not_broken(categories)

        node = categories.find(3)
        assert node.parent_id == 1
        assert node["name"] == "apple v2"
        assert node.lft == 4

        new_node = find_category("new node")
        assert new_node is not None
        assert new_node.parent_id == 3

    def test_rebuild_subtree(self, categories, find_category, assert_tree_not_broken):
        fixed = categories.rebuild_subtree(7, [{"name": "new node"}, {"id": "8"}])

        assert fixed > 0
        assert_tree_not_broken(categories)
        assert find_category("new node").lft == 12
        assert categories.find(8).parent_id == 7

    def test_rebuild_with_soft_deletion(self, categories, assert_tree_not_broken):
        categories.rebuild_tree([{"name": "all deleted"}], delete_missing=True)

        assert_tree_not_broken(categories)
        nodes = categories.query().get()
        assert len(nodes) == 1
        assert nodes[0]["name"] == "all deleted"
        assert categories.query().with_trashed().count() > 1

    def test_rebuild_with_hard_deletion(self, store, categories, assert_tree_not_broken):
        tree = NestedSetTree(store, TreeSchema(table="categories"))

        tree.rebuild_tree([{"name": "all deleted"}], delete_missing=True)

        assert_tree_not_broken(tree)
        assert store.count_where("categories") == 1
        node = tree.query().first()
        assert (node.lft, node.rgt) == (1, 2)

    def test_rebuild_subtree_with_deletion(self, categories, assert_tree_not_broken):
        categories.rebuild_subtree(5, [{"id": 6}, {"id": 9}], delete_missing=True)

        assert_tree_not_broken(categories)
        assert categories.descendants(categories.find(5)).keys() == [6, 9]

    def test_invalid_key_is_rejected_before_writes(self, categories):
        with pytest.raises(NodeNotFoundError):
            categories.rebuild_tree([{"id": 1, "name": "changed"}, {"id": 24}])

        assert categories.find(1)["name"] == "store"
        assert categories.query().count() == 11

    def test_key_outside_subtree_is_rejected(self, categories):
        with pytest.raises(NodeNotFoundError):
            categories.rebuild_subtree(7, [{"id": 3}])

    def test_duplicate_key_is_rejected(self, categories):
        with pytest.raises(NodeNotFoundError):
            categories.rebuild_tree([{"id": 3}, {"id": 3}])
