"""Exception taxonomy for the RESP client.

``IncompleteFrame`` never leaves the decoder.  Everything else is fatal to
the connection: the pipeline client fails every pending command with the
error and moves to its terminal Closed state.
"""
from __future__ import annotations


class RespClientError(Exception):
    """Base class for every error raised by respipe."""


class IncompleteFrame(RespClientError):
    """Not enough bytes buffered yet; retry after the next chunk."""


class ProtocolSyntaxError(RespClientError):
    """The peer sent bytes that are not valid RESP2.

    ``replies`` holds the replies that were completed earlier in the same
    :meth:`Aggregator.feed` call.
    """

    replies: tuple = ()


class ProtocolLimitError(ProtocolSyntaxError):
    """A reply exceeded one of the configured size or nesting caps."""


class UnsolicitedReplyError(RespClientError):
    """A complete reply arrived while no command was waiting for one."""


class TransportError(RespClientError, ConnectionError):
    """The underlying connection failed or was closed."""


class CommandRejectedAfterClose(RespClientError):
    """enqueue() was called on a client that is already Closed."""
