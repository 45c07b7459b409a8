"""Resumable RESP2 frame decoder.

The decoder owns a byte buffer and a parse cursor.  Each call to
:meth:`FrameDecoder.next_frame` yields at most one frame: a scalar reply
value or an :class:`ArrayHeader`.  Array children are not collected here;
they come out as subsequent frames and :mod:`respipe.aggregator` nests them.

When the buffer ends mid-token ``next_frame`` returns ``None`` and keeps
what it has, so the caller can feed the next chunk and ask again.  Only a
bulk string header that has already been parsed is remembered across
calls; every other partial line is re-scanned once more data arrives.
"""
from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterator, Union

from .errors import IncompleteFrame, ProtocolLimitError, ProtocolSyntaxError
from .values import NULL_BULK_STRING, BulkString, Integer, RespError, SimpleString

SIMPLE_STRING = ord("+")
ERROR = ord("-")
INTEGER = ord(":")
BULK_STRING = ord("$")
ARRAY = ord("*")

_TAGS = frozenset((SIMPLE_STRING, ERROR, INTEGER, BULK_STRING, ARRAY))
_INT_RE = re.compile(rb"-?[0-9]+")
_CR = ord("\r")

# Consumed bytes are dropped from the front of the buffer once this many pile up.
_COMPACT_THRESHOLD = 64 * 1024


@dataclass(frozen=True)
class ArrayHeader:
    """``*<n>``: the arity of an array whose elements follow as frames."""
    length: int

    @property
    def is_null(self) -> bool:
        return self.length == -1


Frame = Union[SimpleString, RespError, Integer, BulkString, ArrayHeader]


def _parse_int(line: bytes, what: str) -> int:
    if not _INT_RE.fullmatch(line):
        raise ProtocolSyntaxError(f"invalid {what}: {line!r}")
    return int(line)


class FrameDecoder:
    def __init__(self, max_inline_length: int = 64 * 1024, max_bulk_length: int = 512 * 1024 * 1024) -> None:
        self.max_inline_length = max_inline_length
        self.max_bulk_length = max_bulk_length
        self._buf = bytearray()
        self._pos = 0
        # Length of a bulk string whose header was consumed but whose payload is still short.
        self._bulk_len: int | None = None
        self._failed: ProtocolSyntaxError | None = None

    @property
    def buffered(self) -> int:
        """Number of received bytes not yet turned into frames."""
        return len(self._buf) - self._pos

    @property
    def failed(self) -> bool:
        return self._failed is not None

    def feed(self, data: bytes) -> None:
        if self._failed is not None:
            raise self._failed
        if data:
            self._buf += data

    def next_frame(self) -> Frame | None:
        """Return the next complete frame, or ``None`` if more bytes are needed.

        Raises :class:`ProtocolSyntaxError` on malformed input.  After that
        the decoder is unusable and re-raises the same error on every call.
        """
        if self._failed is not None:
            raise self._failed
        try:
            frame = self._decode()
        except IncompleteFrame:
            return None
        except ProtocolSyntaxError as exc:
            self._failed = exc
            raise
        self._compact()
        return frame

    def frames(self) -> Iterator[Frame]:
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def _decode(self) -> Frame:
        if self._bulk_len is not None:
            return self._bulk_payload()
        if self._pos >= len(self._buf):
            raise IncompleteFrame()

        tag = self._buf[self._pos]
        if tag not in _TAGS:
            raise ProtocolSyntaxError(f"unknown reply type byte {bytes([tag])!r}")
        line = self._line()

        if tag == SIMPLE_STRING:
            return SimpleString(line.decode("utf-8", errors="replace"))
        if tag == ERROR:
            return RespError(line.decode("utf-8", errors="replace"))
        if tag == INTEGER:
            n = _parse_int(line, "integer reply")
            try:
                return Integer(n)
            except ValueError as exc:
                raise ProtocolSyntaxError(str(exc)) from None
        if tag == BULK_STRING:
            n = _parse_int(line, "bulk string length")
            if n == -1:
                return NULL_BULK_STRING
            if n < -1:
                raise ProtocolSyntaxError(f"invalid bulk string length: {n}")
            if n > self.max_bulk_length:
                raise ProtocolLimitError(f"bulk string length {n} exceeds limit {self.max_bulk_length}")
            self._bulk_len = n
            return self._bulk_payload()

        n = _parse_int(line, "array length")
        if n < -1:
            raise ProtocolSyntaxError(f"invalid array length: {n}")
        return ArrayHeader(n)

    def _line(self) -> bytes:
        """Consume ``<tag><text>\\r\\n`` and return ``<text>``."""
        start = self._pos + 1
        end = self._buf.find(b"\n", start)
        if end == -1:
            if len(self._buf) - start > self.max_inline_length:
                raise ProtocolLimitError(f"reply line longer than {self.max_inline_length} bytes")
            raise IncompleteFrame()
        if end == start or self._buf[end - 1] != _CR:
            raise ProtocolSyntaxError("line terminated by bare LF, expected CRLF")
        if end - 1 - start > self.max_inline_length:
            raise ProtocolLimitError(f"reply line longer than {self.max_inline_length} bytes")
        line = bytes(self._buf[start:end - 1])
        self._pos = end + 1
        return line

    def _bulk_payload(self) -> BulkString:
        n = self._bulk_len
        if len(self._buf) - self._pos < n + 2:
            raise IncompleteFrame()
        end = self._pos + n
        if self._buf[end:end + 2] != b"\r\n":
            raise ProtocolSyntaxError("bulk string payload not terminated by CRLF")
        payload = bytes(self._buf[self._pos:end])
        self._pos = end + 2
        self._bulk_len = None
        return BulkString(payload)

    def _compact(self) -> None:
        if self._pos >= len(self._buf):
            self._buf.clear()
            self._pos = 0
        elif self._pos > _COMPACT_THRESHOLD:
            del self._buf[:self._pos]
            self._pos = 0
