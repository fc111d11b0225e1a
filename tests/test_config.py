"""
Tests for configuration models and configuration files.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import json

import pytest
from pydantic import ValidationError

from nestedset.core.config import (
    EngineConfig,
    StoreConfig,
    TreeSchema,
    load_config,
    save_config,
    validate_config,
)
from nestedset.core.exceptions import ConfigurationError
from nestedset.core.tree import NestedSetTree


class TestTreeSchema:
    def test_defaults(self):
        schema = TreeSchema(table="categories")
        assert schema.tree_columns == ["id", "_lft", "_rgt", "parent_id"]
        assert schema.scope_columns == []
        assert schema.supports_soft_delete is False

    def test_invalid_identifier(self):
        with pytest.raises(ValidationError):
            TreeSchema(table="bad name")
        with pytest.raises(ValidationError):
            TreeSchema(table="t", scope_columns=["menu-id"])

    def test_columns_must_be_distinct(self):
        with pytest.raises(ValidationError):
            TreeSchema(table="t", lft_column="id")
        with pytest.raises(ValidationError):
            TreeSchema(table="t", scope_columns=["a", "a"])
        with pytest.raises(ValidationError):
            TreeSchema(table="t", deleted_column="parent_id")

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            TreeSchema(table="t", depth_column="depth")


class TestStoreConfig:
    def test_memory_path(self):
        config = StoreConfig()
        assert config.path == ":memory:"
        assert config.to_driver_config()["journal_mode"] == "WAL"

    def test_file_path_is_resolved(self, tmp_path):
        config = StoreConfig(path=str(tmp_path / "sub" / "tree.db"), journal_mode="delete")
        assert config.path == str((tmp_path / "sub" / "tree.db").resolve())
        assert (tmp_path / "sub").is_dir()
        assert config.journal_mode == "DELETE"

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            StoreConfig(driver="postgres")
        with pytest.raises(ValidationError):
            StoreConfig(busy_timeout_ms=-1)
        with pytest.raises(ValidationError):
            StoreConfig(journal_mode="fast")


class TestEngineConfig:
    def test_tree_lookup(self):
        config = EngineConfig(trees={"categories": {"table": "categories"}}, log_level="debug")
        assert config.tree("categories").table == "categories"
        assert config.log_level == "DEBUG"
        with pytest.raises(ConfigurationError) as exc_info:
            config.tree("menus")
        assert exc_info.value.config_key == "trees.menus"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            EngineConfig(log_level="verbose")


class TestConfigFile:
    def test_missing_file(self, tmp_path):
        is_valid, error, config = validate_config(tmp_path / "missing.json")
        assert is_valid is False
        assert "not found" in error
        assert config is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        is_valid, error, _ = validate_config(path)
        assert is_valid is False
        assert error.startswith("Invalid JSON")

    def test_validation_error(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"trees": {"t": {"table": "bad name"}}}), encoding="utf-8")
        is_valid, error, _ = validate_config(path)
        assert is_valid is False
        assert error.startswith("Validation error")
        with pytest.raises(ValueError):
            load_config(path)

    def test_conflicting_schemas(self, tmp_path):
        path = tmp_path / "config.json"
        save_config(
            {
                "trees": {
                    "a": {"table": "nodes"},
                    "b": {"table": "nodes", "scope_columns": ["menu_id"]},
                }
            },
            path,
        )
        is_valid, error, _ = validate_config(path)
        assert is_valid is False
        assert "Conflicting" in error

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "conf" / "config.json"
        config = EngineConfig(
            trees={"categories": TreeSchema(table="categories", deleted_column="deleted_at")}
        )

        save_config(config.model_dump(), path)
        loaded = load_config(path)

        assert loaded.tree("categories") == config.tree("categories")
        assert loaded.store.path == ":memory:"


def test_tree_from_config(tmp_path, assert_tree_not_broken):
    config = EngineConfig(
        store={"path": str(tmp_path / "tree.db")},
        trees={"menus": {"table": "menus", "scope_columns": ["menu_id"]}},
    )
    tree = NestedSetTree.from_config(config, "menus", scope={"menu_id": 1})
    try:
        tree.install_schema({"title": "TEXT"})
        node = tree.create({"title": "root", "children": [{"title": "child"}]})

        assert (node.lft, node.rgt) == (1, 4)
        assert node["menu_id"] == 1
        assert tree.descendants(node).pluck("menu_id") == [1]
        assert_tree_not_broken(tree)
    finally:
        tree.store.disconnect()
