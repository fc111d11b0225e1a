"""
Tests for the mutation engine: plan/apply protocol and bulk rewrites.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nestedset.core.exceptions import NodeNotFoundError, TreeLogicError
from nestedset.core.mutation import ChangeState, IntentKind


@pytest.fixture
def engine(categories):
    return categories.engine


def bounds(tree, key):
    node = tree.find(key)
    return node.lft, node.rgt


def test_lower_bound(engine, menu_items):
    assert engine.lower_bound({}) == 22
    assert menu_items.engine.lower_bound({"menu_id": 2}) == 6
    assert menu_items.engine.lower_bound({"menu_id": 3}) == 0


def test_make_gap_shifts_boundaries_at_or_after_cut(engine, categories):
    assert engine.make_gap({}, 23, 2) == 0
    assert engine.make_gap({}, 21, 2) == 1
    assert bounds(categories, 11) == (23, 24)

    assert engine.make_gap({}, 20, 4) == 2
    assert bounds(categories, 1) == (1, 24)
    assert bounds(categories, 11) == (27, 28)


def test_make_gap_stays_in_scope(menu_items):
    menu_items.engine.make_gap({"menu_id": 1}, 3, 2)
    assert bounds(menu_items, 2) == (5, 8)
    assert bounds(menu_items, 4) == (3, 6)


def test_move_node_rotates_window(engine, categories, assert_tree_not_broken):
    # samsung to just after sony
    affected = engine.move_node({}, 7, 17)
    assert affected == 3
    assert bounds(categories, 7) == (13, 16)
    assert bounds(categories, 8) == (14, 15)
    assert bounds(categories, 9) == (11, 12)
    assert_tree_not_broken(categories)


def test_move_node_in_place(engine):
    assert engine.move_node({}, 3, 3) == 0
    assert engine.move_node({}, 3, 5) == 0


def test_move_node_into_itself(engine, categories):
    with pytest.raises(TreeLogicError):
        engine.move_node({}, 5, 10)
    with pytest.raises(TreeLogicError):
        engine.move_node({}, 5, 19)
    assert bounds(categories, 5) == (8, 19)


def test_move_unknown_node(engine):
    with pytest.raises(NodeNotFoundError):
        engine.move_node({}, 99, 1)


def test_get_node_data(engine):
    assert engine.get_node_data({}, 5) == {"_lft": 8, "_rgt": 19, "parent_id": 1}
    assert engine.get_node_data({}, 99) is None
    with pytest.raises(NodeNotFoundError):
        engine.get_node_data({}, 99, required=True)


class TestPlanApply:
    def test_plan_records_single_pending_change(self, categories, find_category):
        apple = find_category("apple")
        mobile = find_category("mobile")

        change = categories.plan_append(apple, mobile)

        assert change.kind == IntentKind.APPEND
        assert change.state == ChangeState.PENDING
        assert change.parent_id == 5
        assert apple.pending is change
        assert categories.find(3).parent_id == 2

    def test_apply_syncs_node(self, categories, find_category):
        apple = find_category("apple")
        change = categories.plan_after(apple, find_category("galaxy"))

        result = categories.apply(change)

        assert change.state == ChangeState.SYNCED
        assert apple.pending is None
        assert apple.parent_id == 7
        assert not apple.is_bounds_dirty()
        assert result.moved is True

    def test_newer_plan_supersedes_older(self, categories, find_category, assert_tree_not_broken):
        apple = find_category("apple")
        mobile = find_category("mobile")
        first = categories.plan_append(apple, mobile)
        second = categories.plan_prepend(apple, mobile)

        assert first.is_superseded
        with pytest.raises(TreeLogicError):
            categories.apply(first)

        categories.apply(second)
        assert (apple.lft, apple.parent_id) == (7, 5)
        assert_tree_not_broken(categories)

    def test_change_cannot_be_applied_twice(self, categories, find_category):
        apple = find_category("apple")
        change = categories.plan_append(apple, find_category("mobile"))
        categories.apply(change)

        with pytest.raises(TreeLogicError):
            categories.apply(change)

    def test_change_invalidated_by_concurrent_move(self, categories, find_category):
        samsung = find_category("samsung")
        notebooks = find_category("notebooks")
        change = categories.plan_append(notebooks, samsung)

        # samsung becomes a child of notebooks before the change is applied
        categories.append_node(samsung, notebooks)

        with pytest.raises(TreeLogicError):
            categories.apply(change)
        assert categories.find(2).parent_id == 1
        assert categories.find(7).parent_id == 2

    def test_intent_requires_target(self, engine, categories):
        with pytest.raises(TreeLogicError):
            engine.plan(categories.new_node(name="x"), IntentKind.APPEND)
        with pytest.raises(TreeLogicError):
            engine.plan(categories.new_node(name="x"), "raw")

    def test_plan_accepts_intent_name(self, engine, categories, find_category):
        change = engine.plan(categories.new_node(name="x"), "before", find_category("apple"))
        assert change.kind is IntentKind.BEFORE
        assert change.parent_id == 2
