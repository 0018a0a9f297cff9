"""Jinja2-based template engine with the collect/append directives installed."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Type, Union

from jinja2 import (
    BaseLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateNotFound,
    TemplateRuntimeError,
    TemplateSyntaxError,
    Undefined,
)
from jinja2.sandbox import ImmutableSandboxedEnvironment, SandboxedEnvironment

from jinja_collect.config.project_config import CONFIG_DIR_NAME, ProjectConfig, ProjectDiscovery
from jinja_collect.config.settings import settings
from jinja_collect.directives import CollectExtension

# Setup logging for template engine
template_logger = logging.getLogger(__name__)

# Default template variables available in all templates
DEFAULT_VARIABLES = {
    "project_name": "",
    "project_slug": "",
    "timestamp": "",
    "utcnow": "",
}


def slugify_project_name(name: str) -> str:
    """Convert a project name into a URL-friendly slug."""
    slug = re.sub(r'[^a-zA-Z0-9\s-]', '', str(name)).strip().lower()
    slug = re.sub(r'[-\s]+', '-', slug)
    return slug.strip('-')


class TemplateEngineError(Exception):
    """Base exception for template engine errors."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class TemplateNotFoundError(TemplateEngineError):
    """Raised when a template cannot be located."""
    pass


class TemplateValidationError(TemplateEngineError):
    """Raised when template validation fails."""
    pass


class TemplateRenderError(TemplateEngineError):
    """Raised when template rendering fails."""
    pass


def create_environment(
    security_mode: str = "sandbox",
    loader: Optional[BaseLoader] = None,
    strict_undefined: bool = True,
    extensions: Iterable[Union[str, Type]] = (),
    **options: Any,
) -> Environment:
    """
    Create a Jinja2 environment with the collect/append directives installed.

    Args:
        security_mode: "sandbox", "immutable", or "none"/"unrestricted"
        loader: Optional template loader
        strict_undefined: Use StrictUndefined instead of the lenient default
        extensions: Additional Jinja2 extensions to load
        **options: Extra keyword arguments passed to the environment

    Returns:
        Configured Jinja2 environment
    """
    common_kwargs: Dict[str, Any] = dict(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined if strict_undefined else Undefined,
    )
    common_kwargs.update(options)
    common_kwargs["extensions"] = [CollectExtension, *extensions]

    # Normalize security mode - accept both "none" and "unrestricted"
    normalized_mode = (security_mode or "sandbox").lower()
    if normalized_mode in ("none", "unrestricted"):
        normalized_mode = "none"

    if normalized_mode == "immutable":
        env = ImmutableSandboxedEnvironment(**common_kwargs)
        template_logger.debug("Created immutable sandboxed environment")
    elif normalized_mode == "sandbox":
        env = SandboxedEnvironment(**common_kwargs)
        template_logger.debug("Created sandboxed environment")
    elif normalized_mode == "none":
        env = Environment(**common_kwargs)
        template_logger.debug("Created unrestricted environment")
    else:
        raise TemplateEngineError(f"Unknown security mode '{security_mode}'")

    return env


class Jinja2TemplateEngine:
    """Jinja2 template engine with sandboxing, project templates and collect blocks."""

    def __init__(
        self,
        project_root: Optional[Path] = None,
        project_name: Optional[str] = None,
        security_mode: Optional[str] = None,
        template_dirs: Optional[Sequence[Path]] = None,
        strict_undefined: Optional[bool] = None,
        project_config: Optional[ProjectConfig] = None,
    ):
        """
        Initialize the Jinja2 template engine.

        Args:
            project_root: Root directory of the project
            project_name: Name of the project
            security_mode: Security mode - "sandbox", "immutable", or "none"
            template_dirs: Extra template directories searched first
            strict_undefined: Whether undefined variables raise on use
            project_config: Pre-loaded project configuration
        """
        self.project_root = Path(project_root).resolve() if project_root else settings.project_root
        self.project_name = project_name or self.project_root.name
        self.project_slug = slugify_project_name(self.project_name)

        self.project_config = project_config or ProjectDiscovery.load_config(self.project_root)

        # Explicit arguments beat project config, which beats settings
        self.security_mode = security_mode or self.project_config.security_mode or settings.security_mode
        if strict_undefined is None:
            strict_undefined = self.project_config.strict_undefined
        if strict_undefined is None:
            strict_undefined = settings.strict_undefined
        self.strict_undefined = strict_undefined

        # Template directories
        self._template_dir_types: Dict[Path, str] = {}
        self.template_dirs = self._discover_template_directories(template_dirs or [])

        self.env = create_environment(
            security_mode=self.security_mode,
            loader=FileSystemLoader([str(d) for d in self.template_dirs]),
            strict_undefined=self.strict_undefined,
        )
        self.env.globals.update(settings.extra_globals)

        template_logger.debug(
            f"Initialized template engine for project '{self.project_name}' "
            f"with {len(self.template_dirs)} template directories"
        )

    def _discover_template_directories(self, explicit_dirs: Sequence[Path]) -> List[Path]:
        """Discover template directories in order of precedence."""
        template_dirs: List[Path] = []
        seen: Set[Path] = set()

        def add_dir(path: Optional[Path], dir_type: str) -> None:
            if not path:
                return
            resolved = Path(path).expanduser().resolve()
            if not resolved.is_dir():
                template_logger.debug(f"Skipping missing template directory: {resolved}")
                return
            if resolved in seen:
                return
            template_dirs.append(resolved)
            self._template_dir_types[resolved] = dir_type
            seen.add(resolved)
            template_logger.debug(f"Registered template directory ({dir_type}): {resolved}")

        # 1. Directories passed by the caller
        for path in explicit_dirs:
            add_dir(path, "explicit")

        # 2. Project-specific custom templates (.collect/templates/)
        add_dir(self.project_root / CONFIG_DIR_NAME / "templates", "project_custom")

        # 3. Directories listed in the project config
        for path in self.project_config.template_dirs:
            add_dir(path, "project_config")

        # 4. Project-root templates directory
        add_dir(self.project_root / "templates", "project_templates")

        # 5. Directories from the environment
        for path in settings.template_dirs:
            add_dir(path, "settings")

        return template_dirs

    def load_custom_variables(self) -> Dict[str, Any]:
        """Load custom variables from project config and .collect/variables.json."""
        custom_vars: Dict[str, Any] = dict(self.project_config.variables)
        variables_file = self.project_root / CONFIG_DIR_NAME / "variables.json"

        if variables_file.exists():
            try:
                with open(variables_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    custom_vars.update(data)
                    template_logger.debug(f"Loaded {len(data)} custom variables from {variables_file}")
                else:
                    template_logger.warning(f"Ignoring non-object variables file {variables_file}")
            except json.JSONDecodeError as e:
                template_logger.warning(f"Invalid JSON in variables file {variables_file}: {e}")
            except OSError as e:
                template_logger.error(f"Error loading variables file {variables_file}: {e}")

        return custom_vars

    def _build_context(self, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build template context from defaults, custom variables, and metadata."""
        context = DEFAULT_VARIABLES.copy()

        now = datetime.now(timezone.utc)
        context.update({
            "project_name": self.project_name,
            "project_slug": self.project_slug,
            "project_root": str(self.project_root),
            "timestamp": now.strftime("%Y-%m-%d %H:%M:%S UTC"),
            "utcnow": now.isoformat(),
        })

        context.update(self.load_custom_variables())

        # Add runtime metadata (both as dict + flattened keys)
        metadata_payload = metadata.copy() if isinstance(metadata, dict) else {}
        context["metadata"] = metadata_payload
        context.update(metadata_payload)

        return context

    def _render(self, template: Template, metadata: Optional[Dict[str, Any]], label: str) -> str:
        context = self._build_context(metadata)
        try:
            result = template.render(**context)
        except TemplateRuntimeError as e:
            template_logger.error(f"Template runtime error in {label}: {e}")
            raise TemplateRenderError(f"Template runtime error in {label}: {e}", e) from e
        except TemplateSyntaxError as e:
            # Raised lazily, e.g. by an include of a broken template
            raise TemplateValidationError(f"Template syntax error in {label}: {e}", e) from e
        except TemplateNotFound as e:
            raise TemplateNotFoundError(f"Template '{e.name}' not found while rendering {label}", e) from e
        except Exception as e:
            raise TemplateRenderError(f"Unexpected error rendering {label}: {e}", e) from e

        template_logger.debug(f"Successfully rendered {label} ({len(result)} chars)")
        return result

    def render_template(self, template_name: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template with the given context.

        Args:
            template_name: Name of the template file
            metadata: Additional variables for template rendering

        Returns:
            Rendered template content

        Raises:
            TemplateNotFoundError: If template file is not found
            TemplateValidationError: If template has syntax errors
            TemplateRenderError: If rendering fails
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise TemplateNotFoundError(
                f"Template '{template_name}' not found in template directories: {self.template_dirs}", e
            ) from e
        except TemplateSyntaxError as e:
            raise TemplateValidationError(f"Template syntax error in '{template_name}': {e}", e) from e

        return self._render(template, metadata, f"template '{template_name}'")

    def render_string(self, template_string: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template string with the given context.

        Args:
            template_string: Jinja2 template string
            metadata: Additional variables for template rendering

        Returns:
            Rendered content
        """
        try:
            template = self.env.from_string(template_string)
        except TemplateSyntaxError as e:
            raise TemplateValidationError(f"Template syntax error: {e}", e) from e

        return self._render(template, metadata, "template string")

    def validate_string(self, template_string: str) -> Dict[str, Any]:
        """Validate template source without rendering it."""
        result: Dict[str, Any] = {
            "template": None,
            "valid": False,
            "errors": [],
            "line_count": len(template_string.splitlines()),
            "size_bytes": len(template_string.encode("utf-8")),
        }

        try:
            # Parse and compile without rendering to validate syntax
            self.env.compile(template_string)
            result["valid"] = True
        except TemplateSyntaxError as e:
            result["errors"].append(f"Syntax error at line {e.lineno}: {e.message}")

        return result

    def validate_template(self, template_name: str) -> Dict[str, Any]:
        """
        Validate a template without rendering it.

        Returns:
            Validation result with success status and any errors
        """
        try:
            source, filename, _ = self.env.loader.get_source(self.env, template_name)
        except TemplateNotFound:
            return {
                "template": template_name,
                "valid": False,
                "errors": [f"Template '{template_name}' not found"],
                "line_count": 0,
                "size_bytes": 0,
            }

        result = self.validate_string(source)
        result["template"] = template_name
        if result["valid"]:
            template_logger.debug(f"Template '{template_name}' validation passed")
        return result

    def list_templates(self, extension: str = ".j2") -> List[str]:
        """List all available templates with the given extension (recursive)."""
        templates: List[str] = []
        seen: Set[str] = set()

        for template_dir in self.template_dirs:
            for template_path in sorted(template_dir.rglob(f"*{extension}")):
                relative = template_path.relative_to(template_dir).as_posix()
                if relative not in seen:
                    seen.add(relative)
                    templates.append(relative)

        return templates

    def describe_template_directories(self) -> List[Dict[str, str]]:
        """Return metadata about each discovered template directory."""
        return [
            {"path": str(template_dir), "type": self._template_dir_types.get(template_dir, "unknown")}
            for template_dir in self.template_dirs
        ]

    def get_template_info(self, template_name: str) -> Dict[str, Any]:
        """Get detailed information about a template."""
        info: Dict[str, Any] = {
            "name": template_name,
            "found": False,
            "path": None,
            "size_bytes": 0,
            "line_count": 0,
            "last_modified": None,
            "template_type": "unknown",
        }

        for template_dir in self.template_dirs:
            template_path = template_dir / template_name
            if template_path.is_file():
                stat = template_path.stat()
                info["found"] = True
                info["path"] = str(template_path)
                info["size_bytes"] = stat.st_size
                info["line_count"] = len(template_path.read_text(encoding='utf-8').splitlines())
                info["last_modified"] = stat.st_mtime
                info["template_type"] = self._template_dir_types.get(template_dir, "unknown")
                break

        return info
