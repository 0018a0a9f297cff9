"""Project discovery and per-project template configuration.

A project may carry a ``.collect`` directory holding a ``config.yaml`` (or
``config.yml`` / ``config.json``), custom templates under
``.collect/templates`` and template variables in ``.collect/variables.json``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Setup structured logging for project configuration operations
project_config_logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".collect"


@dataclass
class ProjectConfig:
    """Per-project template configuration."""

    project_root: Path
    template_dirs: List[Path] = field(default_factory=list)
    security_mode: Optional[str] = None
    strict_undefined: Optional[bool] = None
    variables: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_root: Path) -> "ProjectConfig":
        """Create ProjectConfig from dictionary data."""
        raw_dirs = data.get("template_dirs") or []
        if not isinstance(raw_dirs, list) or not all(isinstance(entry, str) for entry in raw_dirs):
            project_config_logger.warning(
                f"Ignoring 'template_dirs' in project config for {project_root}: expected a list of paths"
            )
            raw_dirs = []
        # Resolve path fields relative to project root
        template_dirs = [project_root / Path(entry) for entry in raw_dirs]

        strict_undefined = data.get("strict_undefined")
        if strict_undefined is not None:
            strict_undefined = bool(strict_undefined)

        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            project_config_logger.warning(
                f"Ignoring non-mapping 'variables' in project config for {project_root}"
            )
            variables = {}

        return cls(
            project_root=project_root,
            template_dirs=template_dirs,
            security_mode=data.get("security_mode"),
            strict_undefined=strict_undefined,
            variables=variables,
        )

    @classmethod
    def defaults_for_project(cls, project_root: Path) -> "ProjectConfig":
        """Create default ProjectConfig for a project."""
        return cls(project_root=project_root)

    def to_dict(self) -> Dict[str, Any]:
        """Convert ProjectConfig to dictionary for serialization."""
        result: Dict[str, Any] = {
            "template_dirs": [
                str(path.relative_to(self.project_root)) if path.is_relative_to(self.project_root) else str(path)
                for path in self.template_dirs
            ],
            "variables": self.variables,
        }
        if self.security_mode is not None:
            result["security_mode"] = self.security_mode
        if self.strict_undefined is not None:
            result["strict_undefined"] = self.strict_undefined
        return result


class ProjectDiscovery:
    """Project root discovery and configuration loading."""

    MARKERS = (CONFIG_DIR_NAME, ".git", "pyproject.toml", "package.json")

    @staticmethod
    def find_project_root(start_path: Optional[Path] = None) -> Optional[Path]:
        """
        Find the project root by searching up from start_path.

        Looks for a ``.collect`` directory first, then common repository
        markers (``.git``, ``pyproject.toml``, ``package.json``).

        Args:
            start_path: Path to start searching from (defaults to current working directory)

        Returns:
            Project root path or None if not found
        """
        if start_path is None:
            start_path = Path.cwd()

        current = start_path.resolve()
        for candidate in (current, *current.parents):
            for marker in ProjectDiscovery.MARKERS:
                if (candidate / marker).exists():
                    return candidate
        return None

    @staticmethod
    def load_config(project_root: Path) -> ProjectConfig:
        """
        Load template configuration for a project.

        Search order:
        1. .collect/config.yaml
        2. .collect/config.yml
        3. .collect/config.json
        4. Defaults

        Args:
            project_root: Project root path

        Returns:
            Loaded or default ProjectConfig
        """
        config_dir = project_root / CONFIG_DIR_NAME
        config_paths = [
            config_dir / "config.yaml",
            config_dir / "config.yml",
            config_dir / "config.json",
        ]

        for config_path in config_paths:
            if not config_path.exists():
                continue
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    if config_path.suffix in (".yaml", ".yml"):
                        data = yaml.safe_load(f) or {}
                    else:
                        data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top-level value must be a mapping")

                project_config_logger.debug(f"Loaded project config from {config_path}")
                return ProjectConfig.from_dict(data, project_root)

            except (OSError, ValueError, yaml.YAMLError) as e:
                # json.JSONDecodeError is a ValueError
                project_config_logger.warning(f"Failed to load config from {config_path}: {e}")
                continue

        return ProjectConfig.defaults_for_project(project_root)

    @staticmethod
    def ensure_config(project_root: Path, config: ProjectConfig) -> Path:
        """
        Write ``.collect/config.yaml`` unless it already exists.

        Returns:
            Path of the configuration file
        """
        config_dir = project_root / CONFIG_DIR_NAME
        config_dir.mkdir(parents=True, exist_ok=True)
        config_file = config_dir / "config.yaml"

        if not config_file.exists():
            try:
                with open(config_file, "w", encoding="utf-8") as f:
                    yaml.safe_dump(config.to_dict(), f, default_flow_style=False, indent=2)
                project_config_logger.info(f"Created project config at {config_file}")
            except OSError as e:
                project_config_logger.error(f"Failed to create config file: {e}")
                raise

        return config_file
