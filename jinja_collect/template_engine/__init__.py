"""Template engine module for jinja_collect."""

from .engine import (
    Jinja2TemplateEngine,
    TemplateEngineError,
    TemplateNotFoundError,
    TemplateValidationError,
    TemplateRenderError,
    DEFAULT_VARIABLES,
    create_environment,
)

__all__ = [
    "Jinja2TemplateEngine",
    "TemplateEngineError",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "TemplateRenderError",
    "DEFAULT_VARIABLES",
    "create_environment",
]
