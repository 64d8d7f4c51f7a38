"""Configuration module - exports Settings and load_settings."""

from synchat.config.loader import load_settings
from synchat.config.settings import DEFAULT_CONFIG_PATH, Settings

__all__ = ["DEFAULT_CONFIG_PATH", "Settings", "load_settings"]
