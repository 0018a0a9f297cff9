"""Result sinks backing an active ``{% collect %}`` block.

A sink is created for every activation of a collect block, written to by the
``append`` tags rendered inside that block, and finalized exactly once when
the block closes. After finalization the sink rejects further writes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Union

from .errors import CollectKindMismatchError, CollectScopeError

sink_logger = logging.getLogger(__name__)

CollectedValue = Union[List[Any], Dict[str, Any]]


class SequenceView(Sequence):
    """Read-only live view over the items of a sequence sink."""

    __slots__ = ("_items",)

    def __init__(self, items: List[Any]) -> None:
        self._items = items

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"SequenceView({self._items!r})"


class ResultSink(ABC):
    """Mutable accumulator owned by one activation of a collect block."""

    keyed: bool = False

    def __init__(self, target: str) -> None:
        self.target = target
        self.closed = False

    @abstractmethod
    def append_value(self, value: Any) -> None:
        """Append an unkeyed value."""

    @abstractmethod
    def append_keyed_value(self, value: Any, key: str) -> None:
        """Insert ``value`` under ``key``."""

    @abstractmethod
    def view(self) -> Union[SequenceView, Mapping[str, Any]]:
        """Return a read-only view that follows the sink while it fills up."""

    @abstractmethod
    def _snapshot(self) -> CollectedValue:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def finalize(self) -> CollectedValue:
        """Close the sink and return a plain copy of what was collected."""
        self._ensure_open()
        self.closed = True
        result = self._snapshot()
        sink_logger.debug(f"Finalized collect '{self.target}' with {len(result)} item(s)")
        return result

    def _ensure_open(self) -> None:
        if self.closed:
            raise CollectScopeError(
                f"'append' into '{self.target}' used after its 'collect' block was closed"
            )


class SequenceSink(ResultSink):
    """Ordered, append-only sink used by unkeyed collect blocks."""

    keyed = False

    def __init__(self, target: str) -> None:
        super().__init__(target)
        self._items: List[Any] = []

    def append_value(self, value: Any) -> None:
        self._ensure_open()
        self._items.append(value)

    def append_keyed_value(self, value: Any, key: str) -> None:
        raise CollectKindMismatchError(
            f"Cannot append keyed values to unkeyed collect '{self.target}'."
        )

    def view(self) -> SequenceView:
        return SequenceView(self._items)

    def _snapshot(self) -> List[Any]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class MappingSink(ResultSink):
    """Key to value sink used by keyed collect blocks; last write wins."""

    keyed = True

    def __init__(self, target: str) -> None:
        super().__init__(target)
        self._entries: Dict[str, Any] = {}

    def append_value(self, value: Any) -> None:
        raise CollectKindMismatchError(
            f"Cannot append unkeyed values to keyed collect '{self.target}'."
        )

    def append_keyed_value(self, value: Any, key: str) -> None:
        self._ensure_open()
        self._entries[key] = value

    def view(self) -> Mapping[str, Any]:
        return MappingProxyType(self._entries)

    def _snapshot(self) -> Dict[str, Any]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def make_sink(target: str, keyed: bool = False) -> ResultSink:
    """Create a fresh, empty sink for one activation of a collect block."""
    sink = MappingSink(target) if keyed else SequenceSink(target)
    sink_logger.debug(f"Opened {'keyed' if keyed else 'unkeyed'} collect '{target}'")
    return sink
