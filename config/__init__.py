"""Configuration module for KB Syncer."""

from config.settings import ConfluenceConfig, Settings, get_settings

__all__ = ["ConfluenceConfig", "Settings", "get_settings"]
