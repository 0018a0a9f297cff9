"""Collect/append block directives for Jinja2 templates."""

from .directives import (
    CollectError,
    CollectExtension,
    CollectKeyTypeError,
    CollectKindMismatchError,
    CollectRenderError,
    CollectScopeError,
    CollectSyntaxError,
)
from .template_engine import Jinja2TemplateEngine, create_environment

__version__ = "1.0.0"

__all__ = [
    "CollectError",
    "CollectExtension",
    "CollectKeyTypeError",
    "CollectKindMismatchError",
    "CollectRenderError",
    "CollectScopeError",
    "CollectSyntaxError",
    "Jinja2TemplateEngine",
    "create_environment",
    "__version__",
]
