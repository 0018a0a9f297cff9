"""Exceptions raised by the collect/append directives.

Every error derives from the matching Jinja2 exception so hosts keep their
usual reporting (line numbers, template names, rewritten tracebacks).
"""

from __future__ import annotations

from jinja2.exceptions import TemplateError, TemplateRuntimeError, TemplateSyntaxError


class CollectError(TemplateError):
    """Base exception for collect/append directive errors."""
    pass


class CollectSyntaxError(CollectError, TemplateSyntaxError):
    """Raised at parse time for malformed collect/append tags."""
    pass


class CollectRenderError(CollectError, TemplateRuntimeError):
    """Base exception for errors raised while a collect block renders."""
    pass


class CollectScopeError(CollectRenderError):
    """Raised when an append has no active collect block to write into."""
    pass


class CollectKindMismatchError(CollectRenderError):
    """Raised when keyed and unkeyed appends are mixed up."""
    pass


class CollectKeyTypeError(CollectRenderError):
    """Raised when an append key does not resolve to a string."""
    pass
