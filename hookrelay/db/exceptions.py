"""Database-related exceptions for HookRelay.

Messages never include credentials from the connection URL.
"""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ConfigurationError(DatabaseError):
    """Raised when database configuration is invalid or missing."""

    pass
