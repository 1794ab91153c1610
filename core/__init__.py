"""Core module for the knowledge base sync engine."""

__version__ = "0.1.0"

from core.errors import ConfigurationError, KBSyncError, RemoteError, ValidationError

__all__ = ["ConfigurationError", "KBSyncError", "RemoteError", "ValidationError", "__version__"]
