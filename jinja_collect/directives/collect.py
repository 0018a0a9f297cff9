"""Jinja2 extension providing the ``collect`` and ``append`` tags.

``{% collect name [keyed] %}`` ... ``{% endcollect %}`` renders its body
against a fresh result sink and, once the body is done, assigns the collected
list (or dict when ``keyed``) to ``name`` in the enclosing scope. Inside the
body ``{% append value into name [keyed key] %}`` writes to the sink of the
nearest enclosing block collecting into ``name``. Neither tag produces output.

The body is compiled like the body of a ``{% call %}`` block: a caller macro
that receives the sink (under the reserved name from :func:`sink_binding_name`)
and a read-only view of it (under ``name``) as parameters. Nested blocks
therefore shadow each other, the binding goes away with the macro frame
whether the body completes or raises, and the body's text output is dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, List, Optional, Union

from jinja2 import nodes
from jinja2.ext import Extension
from jinja2.parser import Parser
from jinja2.runtime import Macro, Undefined

from .errors import CollectKeyTypeError, CollectScopeError, CollectSyntaxError
from .sink import CollectedValue, ResultSink, make_sink

collect_logger = logging.getLogger(__name__)

COLLECT_GRAMMAR = "{% collect <name> [keyed] %} ... {% endcollect %}"
APPEND_GRAMMAR = "{% append <value> into <name> [keyed <key>] %}"

SINK_BINDING_PREFIX = "_collect_sink_"


def sink_binding_name(target: str) -> str:
    """Return the reserved variable name a block's sink is bound to."""
    return f"{SINK_BINDING_PREFIX}{target}"


def _present(value: Any) -> Optional[Any]:
    """Return ``value``, or None when it resolved to nothing."""
    if isinstance(value, Undefined):
        return None
    return value


class CollectExtension(Extension):
    """Accumulate values produced across a template body into one variable."""

    tags = {"collect", "append"}

    def parse(self, parser: Parser) -> Union[nodes.Node, List[nodes.Node]]:
        token = next(parser.stream)
        if token.value == "collect":
            return self._parse_collect(parser, token.lineno)
        return self._parse_append(parser, token.lineno)

    def _parse_collect(self, parser: Parser, lineno: int) -> List[nodes.Node]:
        stream = parser.stream

        if stream.current.type != "name":
            parser.fail(
                f"'collect' tag takes a variable name and optionally 'keyed': {COLLECT_GRAMMAR}",
                lineno,
                CollectSyntaxError,
            )
        target = next(stream).value
        if not nodes.Name(target, "store").can_assign():
            parser.fail(f"Can't collect into '{target}': {COLLECT_GRAMMAR}", lineno, CollectSyntaxError)

        keyed = stream.skip_if("name:keyed")
        if stream.current.type != "block_end":
            parser.fail(
                f"'collect' tag takes a variable name and optionally 'keyed': {COLLECT_GRAMMAR}",
                lineno,
                CollectSyntaxError,
            )
        stream.expect("block_end")

        body = parser.subparse(("name:endcollect",))
        if stream.current.type == "eof":
            parser.fail(
                f"'collect' block was not closed with 'endcollect': {COLLECT_GRAMMAR}",
                lineno,
                CollectSyntaxError,
            )
        next(stream)

        collect_logger.debug(
            f"Parsed 'collect {target}' (keyed={keyed}) with {len(body)} node(s) at line {lineno}"
        )

        sink_ref = parser.free_identifier(lineno)
        open_sink = nodes.Assign(
            sink_ref,
            self.call_method("_open_sink", [nodes.Const(target), nodes.Const(keyed)], lineno=lineno),
            lineno=lineno,
        )
        render_body = nodes.CallBlock(
            self.call_method("_render_body", [sink_ref], lineno=lineno),
            [nodes.Name(sink_binding_name(target), "param"), nodes.Name(target, "param")],
            [],
            body,
            lineno=lineno,
        )
        publish = nodes.Assign(
            nodes.Name(target, "store"),
            self.call_method("_finalize_sink", [sink_ref], lineno=lineno),
            lineno=lineno,
        )
        return [open_sink, render_body, publish]

    def _parse_append(self, parser: Parser, lineno: int) -> nodes.Node:
        stream = parser.stream
        grammar_error = f"'append' statements should use the form {APPEND_GRAMMAR}"

        if stream.current.type == "block_end" or stream.current.test("name:into"):
            parser.fail(grammar_error, lineno, CollectSyntaxError)
        value = parser.parse_expression()

        if not stream.skip_if("name:into") or stream.current.type != "name":
            parser.fail(grammar_error, lineno, CollectSyntaxError)
        target = next(stream).value

        key = None
        if stream.skip_if("name:keyed"):
            if stream.current.type == "block_end":
                parser.fail(grammar_error, lineno, CollectSyntaxError)
            key = parser.parse_expression()

        if stream.current.type != "block_end":
            parser.fail(grammar_error, lineno, CollectSyntaxError)

        args = [nodes.Name(sink_binding_name(target), "load"), nodes.Const(target), value]
        if key is None:
            call = self.call_method("_append_value", args, lineno=lineno)
        else:
            call = self.call_method("_append_keyed_value", args + [key], lineno=lineno)
        return nodes.ExprStmt(call, lineno=lineno)

    # Runtime helpers called from compiled templates.

    def _open_sink(self, target: str, keyed: bool) -> ResultSink:
        return make_sink(target, keyed)

    def _render_body(self, sink: ResultSink, caller: Macro) -> Union[str, Awaitable[str]]:
        # Async templates await whatever this returns.
        if self.environment.is_async:
            return self._render_body_async(sink, caller)
        caller(sink, sink.view())
        return ""

    async def _render_body_async(self, sink: ResultSink, caller: Macro) -> str:
        await caller(sink, sink.view())
        return ""

    def _finalize_sink(self, sink: ResultSink) -> CollectedValue:
        return sink.finalize()

    def _active_sink(self, sink: Any, target: str) -> ResultSink:
        if not isinstance(sink, ResultSink):
            raise CollectScopeError(
                f"'append' into '{target}' could not be resolved: "
                f"it is not inside a 'collect {target}' block"
            )
        return sink

    def _append_value(self, sink: Any, target: str, value: Any) -> str:
        sink = self._active_sink(sink, target)
        value = _present(value)
        if value is None:
            return ""
        sink.append_value(value)
        return ""

    def _append_keyed_value(self, sink: Any, target: str, value: Any, key: Any) -> str:
        sink = self._active_sink(sink, target)
        value = _present(value)
        if value is None:
            return ""
        if not isinstance(key, str):
            raise CollectKeyTypeError(
                f"'append' into '{target}' could not resolve key to a string value "
                f"(got {type(key).__name__})"
            )
        sink.append_keyed_value(value, str(key))
        return ""
