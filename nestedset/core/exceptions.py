"""
Base exception hierarchy for nested set operations.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""


class NestedSetError(Exception):
    """Base exception for nested set operations."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Optional error code for programmatic handling
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class NodeNotFoundError(NestedSetError):
    """Raised when a node key does not resolve within the scope."""

    def __init__(self, message: str, key=None, details: dict = None):
        """
        Initialize not-found error.

        Args:
            message: Error message
            key: Optional key that failed to resolve
            details: Optional additional details
        """
        super().__init__(message, code="NODE_NOT_FOUND", details=details)
        self.key = key


class TreeLogicError(NestedSetError):
    """Raised when a requested structural change is invalid.

    Always raised before any bulk rewrite is issued to the store.
    """

    def __init__(self, message: str, operation: str = None, details: dict = None):
        """
        Initialize logic error.

        Args:
            message: Error message
            operation: Optional tree operation name (e.g. 'move', 'append')
            details: Optional additional details
        """
        super().__init__(message, code="TREE_LOGIC_ERROR", details=details)
        self.operation = operation


class BoundsNotSetError(TreeLogicError):
    """Raised when bounds are read from a node that has not been positioned yet."""

    def __init__(self, message: str = "Node bounds are not set", key=None):
        super().__init__(message, operation="bounds", details={"key": key})
        self.key = key


class ConfigurationError(NestedSetError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, config_key: str = None, details: dict = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_key: Optional configuration key that is invalid
            details: Optional additional details
        """
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)
        self.config_key = config_key
