"""Configuration: settings and feed sources."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
