"""Reassembles decoder frames into complete reply trees.

Open arrays live on an explicit stack, so nesting depth never turns into
Python recursion.  Two caps bound what a hostile peer can make us hold:
the nesting depth and the total number of elements declared by the array
headers of one top-level reply.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterator

from .config import ClientConfig
from .decoder import ArrayHeader, Frame, FrameDecoder
from .errors import ProtocolLimitError, ProtocolSyntaxError
from .values import NULL_ARRAY, Array, RespValue

logger = logging.getLogger(__name__)


@dataclass
class _OpenArray:
    expected: int
    items: list = field(default_factory=list)


class Aggregator:
    def __init__(
        self,
        decoder: FrameDecoder | None = None,
        *,
        max_nesting_depth: int = 512,
        max_array_elements: int = 16_777_216,
    ) -> None:
        self.decoder = decoder if decoder is not None else FrameDecoder()
        self.max_nesting_depth = max_nesting_depth
        self.max_array_elements = max_array_elements
        self._stack: list[_OpenArray] = []
        self._declared = 0
        self._failed: ProtocolSyntaxError | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "Aggregator":
        decoder = FrameDecoder(config.max_inline_length, config.max_bulk_length)
        return cls(
            decoder,
            max_nesting_depth=config.max_nesting_depth,
            max_array_elements=config.max_array_elements,
        )

    @property
    def depth(self) -> int:
        """How many arrays are currently open."""
        return len(self._stack)

    def feed(self, data: bytes) -> list[RespValue]:
        """Buffer *data* and return every reply it completes, oldest first.

        If a later frame in *data* is malformed, the error is raised with the
        replies completed before it attached as ``exc.replies``.
        """
        self.decoder.feed(data)
        out: list[RespValue] = []
        try:
            for value in self.replies():
                out.append(value)
        except ProtocolSyntaxError as exc:
            if out:
                exc.replies = tuple(out)
            raise
        return out

    def replies(self) -> Iterator[RespValue]:
        """Yield complete top-level replies until the buffer runs dry.

        Replies are produced one at a time, so a consumer sees every reply
        that preceded a protocol error before the error itself is raised.
        """
        if self._failed is not None:
            raise self._failed
        while True:
            frame = self.decoder.next_frame()
            if frame is None:
                return
            value = self._push(frame)
            if value is not None:
                yield value

    def _push(self, frame: Frame) -> RespValue | None:
        if isinstance(frame, ArrayHeader):
            if frame.length == -1:
                value: RespValue = NULL_ARRAY
            elif frame.length == 0:
                value = Array(())
            else:
                self._open(frame.length)
                return None
        else:
            value = frame

        while self._stack:
            top = self._stack[-1]
            top.items.append(value)
            if len(top.items) < top.expected:
                return None
            self._stack.pop()
            value = Array(tuple(top.items))

        self._declared = 0
        return value

    def _open(self, length: int) -> None:
        if len(self._stack) >= self.max_nesting_depth:
            self._fail(ProtocolLimitError(f"array nesting deeper than {self.max_nesting_depth}"))
        self._declared += length
        if self._declared > self.max_array_elements:
            self._fail(ProtocolLimitError(
                f"reply declares {self._declared} array elements, limit is {self.max_array_elements}"
            ))
        self._stack.append(_OpenArray(length))

    def _fail(self, exc: ProtocolSyntaxError) -> None:
        logger.warning("rejecting reply: %s", exc)
        self._failed = exc
        raise exc
