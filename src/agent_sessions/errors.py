"""Custom exceptions for session normalization failures."""


class SessionNormalizationError(Exception):
    """Base exception for session normalization errors."""


class SessionParseError(SessionNormalizationError):
    """Raised when a session file or line cannot be decoded into a record."""
