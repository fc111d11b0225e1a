"""
Configuration management for nested set trees.

Provides the table layout schema for a tree, record store settings and the
engine configuration file (validation, loading and saving).

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .exceptions import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(value: str) -> str:
    if not _IDENTIFIER.match(value or ""):
        raise ValueError(f"Invalid SQL identifier: {value!r}")
    return value


class TreeSchema(BaseModel):
    """Column layout of a nested set table."""

    model_config = {"extra": "forbid", "frozen": True}

    table: str = Field(..., description="Table holding the tree records")
    key_column: str = Field(default="id", description="Primary key column")
    lft_column: str = Field(default="_lft", description="Left boundary column")
    rgt_column: str = Field(default="_rgt", description="Right boundary column")
    parent_column: str = Field(default="parent_id", description="Parent key column")
    scope_columns: List[str] = Field(
        default_factory=list,
        description="Columns partitioning the table into independent forests",
    )
    deleted_column: Optional[str] = Field(
        default=None,
        description="Soft-delete timestamp column (None = hard delete only)",
    )

    @field_validator("table", "key_column", "lft_column", "rgt_column", "parent_column")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate SQL identifier format."""
        return check_identifier(v)

    @field_validator("scope_columns")
    @classmethod
    def validate_scope_columns(cls, v: List[str]) -> List[str]:
        """Validate scope column identifiers."""
        for column in v:
            check_identifier(column)
        if len(v) != len(set(v)):
            raise ValueError(f"Duplicate scope columns: {v}")
        return v

    @field_validator("deleted_column")
    @classmethod
    def validate_deleted_column(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return check_identifier(v)

    @model_validator(mode="after")
    def validate_distinct_columns(self) -> "TreeSchema":
        """Tree columns must not collide with each other or with scope columns."""
        names = [
            self.key_column,
            self.lft_column,
            self.rgt_column,
            self.parent_column,
            *self.scope_columns,
        ]
        if self.deleted_column:
            names.append(self.deleted_column)
        if len(names) != len(set(names)):
            raise ValueError(f"Tree columns must be distinct, got: {names}")
        return self

    @property
    def tree_columns(self) -> List[str]:
        return [self.key_column, self.lft_column, self.rgt_column, self.parent_column]

    @property
    def supports_soft_delete(self) -> bool:
        return self.deleted_column is not None


class StoreConfig(BaseModel):
    """Record store configuration."""

    model_config = {"extra": "forbid"}

    driver: str = Field(default="sqlite", description="Store driver type")
    path: str = Field(default=":memory:", description="Path to SQLite database")
    busy_timeout_ms: int = Field(
        default=30000, description="Wait on a locked database before failing (ms)"
    )
    journal_mode: str = Field(default="WAL", description="SQLite journal mode")

    @field_validator("driver")
    @classmethod
    def validate_driver(cls, v: str) -> str:
        """Validate driver type."""
        if v.lower() != "sqlite":
            raise ValueError(f"Driver must be 'sqlite', got: {v}")
        return v.lower()

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate database path."""
        if v == ":memory:":
            return v
        db_path = Path(v)
        # Ensure parent directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return str(db_path.resolve())

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError("busy_timeout_ms must not be negative")
        return v

    @field_validator("journal_mode")
    @classmethod
    def validate_journal_mode(cls, v: str) -> str:
        mode = v.upper()
        if mode not in ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"):
            raise ValueError(f"Unsupported journal mode: {v}")
        return mode

    def to_driver_config(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "busy_timeout_ms": self.busy_timeout_ms,
            "journal_mode": self.journal_mode,
        }


class EngineConfig(BaseModel):
    """Nested set engine configuration file."""

    model_config = {"extra": "forbid"}

    store: StoreConfig = Field(default_factory=StoreConfig, description="Record store")
    trees: Dict[str, TreeSchema] = Field(
        default_factory=dict, description="Named tree schemas"
    )
    log: Optional[str] = Field(default=None, description="Path to log file")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("log")
    @classmethod
    def validate_log_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate log file path."""
        if v is None:
            return None
        log_path = Path(v)
        # Ensure parent directory exists
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return str(log_path.resolve())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    def tree(self, name: str) -> TreeSchema:
        """Schema of a configured tree.

        Raises:
            ConfigurationError: If no tree with ``name`` is configured
        """
        if name not in self.trees:
            raise ConfigurationError(f"Tree '{name}' is not configured", config_key=f"trees.{name}")
        return self.trees[name]


def validate_config(
    config_path: Path,
) -> tuple[bool, Optional[str], Optional[EngineConfig]]:
    """
    Validate configuration file.

    Args:
        config_path: Path to configuration file

    Returns:
        Tuple of (is_valid, error_message, config_object)
    """
    try:
        if not config_path.exists():
            return False, f"Configuration file not found: {config_path}", None

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)

        config = EngineConfig(**config_data)

        # Two trees sharing one table must agree on its layout
        by_table: Dict[str, TreeSchema] = {}
        for name, schema in config.trees.items():
            other = by_table.setdefault(schema.table, schema)
            if other != schema:
                return (
                    False,
                    f"Conflicting schemas for table '{schema.table}' (tree '{name}')",
                    None,
                )

        return True, None, config

    except json.JSONDecodeError as e:
        return False, f"Invalid JSON: {str(e)}", None
    except ValueError as e:
        return False, f"Validation error: {str(e)}", None


def load_config(config_path: Path) -> EngineConfig:
    """
    Load and validate configuration.

    Raises:
        ValueError: If configuration is invalid
    """
    is_valid, error, config = validate_config(config_path)
    if not is_valid:
        raise ValueError(error or "Invalid configuration")
    if config is None:
        raise ValueError("Failed to load configuration")
    return config


def save_config(config: Dict[str, Any], config_path: Path) -> None:
    """Save configuration to file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2, ensure_ascii=False)
