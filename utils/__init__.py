"""Utilities module for KB Syncer."""

from utils.file_utils import LocalContentStore
from utils.logging_utils import configure_logging

__all__ = ["LocalContentStore", "configure_logging"]
