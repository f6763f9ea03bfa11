"""Custom exceptions for model sync failures."""

from __future__ import annotations

from .schemas import SyncErrorCode


class SyncSchedulerError(Exception):
    """Base exception for sync scheduler errors."""


class SchedulerAlreadyRunningError(SyncSchedulerError):
    """Raised when starting a scheduler that is already running."""


class ProviderNotFoundError(SyncSchedulerError):
    """Raised when a provider name is not registered."""


class ProviderFetchError(Exception):
    """Raised when a provider cannot fetch its remote model list."""

    def __init__(self, message: str, code: SyncErrorCode = SyncErrorCode.API_ERROR) -> None:
        super().__init__(message)
        self.code = code

    @property
    def recoverable(self) -> bool:
        """Return True when a retry may succeed."""
        return self.code.recoverable
