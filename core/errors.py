"""Exception taxonomy shared by the sync components.

Only these errors cross component boundaries. Transform and summarization
problems are degraded locally and never raised.
"""

from typing import Optional


class KBSyncError(Exception):
    """Base class for knowledge base sync failures."""


class ConfigurationError(KBSyncError):
    """A required credential or URL is missing."""


class RemoteError(KBSyncError):
    """A remote call returned a non-2xx status or failed in transport.

    Attributes:
        operation: Human readable description of the attempted call.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        if operation:
            message = f"Failed to {operation}: {message}"
        super().__init__(message)


class ValidationError(KBSyncError):
    """A manifest or source structure violates the schema."""
