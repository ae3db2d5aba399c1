"""Configuration exports."""

from .settings import ModelEntryConfig, Settings, load_settings

__all__ = ["Settings", "ModelEntryConfig", "load_settings"]
