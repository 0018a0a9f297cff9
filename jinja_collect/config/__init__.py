"""Configuration package for jinja_collect."""

from __future__ import annotations

from .project_config import ProjectConfig, ProjectDiscovery
from .settings import Settings, settings

__all__ = [
    "ProjectConfig",
    "ProjectDiscovery",
    "Settings",
    "settings",
]
