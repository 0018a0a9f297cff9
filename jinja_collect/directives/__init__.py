"""Collect/append directives for Jinja2 templates."""

from .collect import CollectExtension, sink_binding_name
from .errors import (
    CollectError,
    CollectKeyTypeError,
    CollectKindMismatchError,
    CollectRenderError,
    CollectScopeError,
    CollectSyntaxError,
)
from .sink import MappingSink, ResultSink, SequenceSink, SequenceView, make_sink

__all__ = [
    "CollectExtension",
    "sink_binding_name",
    "CollectError",
    "CollectKeyTypeError",
    "CollectKindMismatchError",
    "CollectRenderError",
    "CollectScopeError",
    "CollectSyntaxError",
    "MappingSink",
    "ResultSink",
    "SequenceSink",
    "SequenceView",
    "make_sink",
]
