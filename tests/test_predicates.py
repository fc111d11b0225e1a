"""
Tests for predicate and shift expression rendering.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from nestedset.core.config import TreeSchema
from nestedset.core.interval import Node
from nestedset.core.predicates import Predicate, PredicateBuilder, Shift

SCHEMA = TreeSchema(table="categories")
SCOPED = TreeSchema(table="menu_items", scope_columns=["menu_id"])


def test_predicate_combination_drops_empty_parts():
    combined = Predicate.all(
        Predicate("a = ?", (1,)), Predicate(), None, Predicate("b = ?", (2,))
    )
    assert combined.sql == "(a = ?) AND (b = ?)"
    assert combined.params == (1, 2)

    single = Predicate("a = ?", (1,)) & Predicate()
    assert single == Predicate("a = ?", (1,))

    either = Predicate("a") | Predicate("b")
    assert either.sql == "(a) OR (b)"
    assert (~Predicate("a")).sql == "NOT (a)"
    assert (~Predicate()).is_empty


def test_gap_shift_sql():
    sql, params = Shift.gap(5, 2).to_sql("_lft")
    assert sql == "CASE WHEN _lft >= ? THEN _lft + ? ELSE _lft END"
    assert params == (5, 2)


def test_move_shift_sql_checks_node_range_first():
    sql, params = Shift.move(2, 7, 2, 18, -6, 11).to_sql("_rgt")
    assert sql == (
        "CASE WHEN _rgt BETWEEN ? AND ? THEN _rgt + ? "
        "WHEN _rgt BETWEEN ? AND ? THEN _rgt + ? ELSE _rgt END"
    )
    assert params == (2, 7, 11, 2, 18, -6)


def test_scope_predicate():
    builder = PredicateBuilder(SCOPED, {"menu_id": 1})
    assert builder.scope() == Predicate("menu_id = ?", (1,))
    assert PredicateBuilder(SCOPED, {"menu_id": None}).scope().sql == "menu_id IS NULL"
    assert PredicateBuilder(SCHEMA, {"menu_id": 1}).scope().is_empty


def test_active_depends_on_deleted_column():
    assert PredicateBuilder(SCHEMA).active().is_empty
    soft = TreeSchema(table="categories", deleted_column="deleted_at")
    assert PredicateBuilder(soft).active().sql == "deleted_at IS NULL"
    assert PredicateBuilder(soft).trashed().sql == "deleted_at IS NOT NULL"


def test_ancestor_of_node_binds_lft_twice():
    galaxy = Node(key=8, lft=12, rgt=13, parent_id=7, exists=True)
    predicate = PredicateBuilder(SCHEMA).ancestor_of(galaxy)
    assert predicate.sql == "_lft < ? AND _rgt > ?"
    assert predicate.params == (12, 12)

    with_self = PredicateBuilder(SCHEMA).ancestor_of(galaxy, and_self=True)
    assert with_self.sql == "_lft <= ? AND _rgt >= ?"


def test_ancestor_of_key_embeds_scoped_subselect():
    predicate = PredicateBuilder(SCOPED, {"menu_id": 2}).ancestor_of(6)
    sub = "(SELECT _n._lft FROM menu_items AS _n WHERE (_n.id = ?) AND (_n.menu_id = ?))"
    assert predicate.sql == f"_lft < {sub} AND _rgt > {sub}"
    assert predicate.params == (6, 2, 6, 2)


def test_descendant_of_node_is_a_range_scan():
    mobile = Node(key=5, lft=8, rgt=19, parent_id=1, exists=True)
    builder = PredicateBuilder(SCHEMA)
    assert builder.descendant_of(mobile) == Predicate("_lft BETWEEN ? AND ?", (9, 19))
    assert builder.descendant_of(mobile, and_self=True).params == (8, 19)


def test_descendant_of_key():
    predicate = PredicateBuilder(SCHEMA).descendant_of(5)
    assert predicate.sql.startswith("_lft > (SELECT _n._lft FROM categories AS _n")
    assert "_lft <= (SELECT _n._rgt FROM categories AS _n" in predicate.sql
    assert predicate.params == (5, 5)


def test_structural_predicates():
    builder = PredicateBuilder(SCHEMA)
    assert builder.is_leaf().sql == "_rgt = _lft + 1"
    assert builder.has_children().sql == "_rgt > _lft + 1"
    assert builder.is_root().sql == "parent_id IS NULL"
    assert builder.child_of(None).sql == "parent_id IS NULL"
    assert builder.child_of(5) == Predicate("parent_id = ?", (5,))
    assert builder.key_in([]).sql == "0 = 1"
    assert builder.key_in([1, 2]) == Predicate("id IN (?, ?)", (1, 2))


def test_sibling_of_root_uses_null_parent():
    root = Node(key=1, lft=1, rgt=20, parent_id=None, exists=True)
    predicate = PredicateBuilder(SCHEMA).sibling_of(root)
    assert predicate.sql == "(parent_id IS NULL) AND (id <> ?)"
    assert predicate.params == (1,)
    assert PredicateBuilder(SCHEMA).sibling_of(root, and_self=True).sql == "parent_id IS NULL"


def test_rewrite_windows():
    builder = PredicateBuilder(SCHEMA)
    assert builder.gap_range(5) == Predicate("_lft >= ? OR _rgt >= ?", (5, 5))
    assert builder.move_window(2, 18).params == (2, 18, 2, 18)


def test_depth_column_is_correlated_and_scoped():
    unscoped = PredicateBuilder(SCHEMA).depth_column()
    assert unscoped.sql == (
        "(SELECT count(1) - 1 FROM categories AS _d "
        "WHERE categories._lft BETWEEN _d._lft AND _d._rgt) AS depth"
    )

    scoped = PredicateBuilder(SCOPED, {"menu_id": 1}).depth_column("level")
    assert "(_d.menu_id = ?)" in scoped.sql
    assert scoped.sql.endswith("AS level")
    assert scoped.params == (1,)

    joined = PredicateBuilder(SCOPED).depth_column()
    assert "_d.menu_id = menu_items.menu_id" in joined.sql
