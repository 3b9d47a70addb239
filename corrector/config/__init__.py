"""Configuration management for the corrector."""

from .manager import ConfigManager
from .models import ProjectConfig
from .settings import Settings, settings

__all__ = ["ConfigManager", "ProjectConfig", "Settings", "settings"]
