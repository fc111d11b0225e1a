"""
Store factory for creating record store instances.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from typing import Any, Dict

from .base import BaseRecordStore
from .exceptions import StoreNotFoundError
from .sqlite import SQLiteRecordStore


def create_store(driver_type: str, config: Dict[str, Any]) -> BaseRecordStore:
    """Create and connect a record store.

    Args:
        driver_type: Store driver type ('sqlite')
        config: Driver-specific configuration dictionary

    Returns:
        Connected store instance

    Raises:
        StoreNotFoundError: If driver type is not found
    """
    driver_type_lower = driver_type.lower()

    if driver_type_lower == "sqlite":
        store = SQLiteRecordStore()
        store.connect(config)
        return store
    raise StoreNotFoundError(f"Unknown store driver type: {driver_type}")
