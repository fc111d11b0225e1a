"""
Logging package: line format with importance (0-10) and handler setup.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from nestedset.logging.log_setup import (
    LEVEL_TO_IMPORTANCE,
    LOG_DATE_FMT,
    LOG_FORMAT_STR,
    TreeLogFormatter,
    configure_from_config,
    configure_logging,
    importance_from_level,
)

__all__ = [
    "LEVEL_TO_IMPORTANCE",
    "LOG_DATE_FMT",
    "LOG_FORMAT_STR",
    "TreeLogFormatter",
    "configure_from_config",
    "configure_logging",
    "importance_from_level",
]
