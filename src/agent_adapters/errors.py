"""Custom exceptions for agent adapter failures."""


class AdapterError(Exception):
    """Base exception for agent adapter errors."""


class AdapterConnectionError(AdapterError):
    """Raised when connecting to a tool that is not installed."""


class SourceDatabaseError(AdapterError):
    """Raised when a tool's SQLite database cannot be opened or lacks required tables."""


class AdapterNotFoundError(AdapterError):
    """Raised when a registry lookup names an unregistered tool."""
