"""
respipe - a pipelined RESP2 client core.

Streaming frame decoder, array aggregator, command encoder and a FIFO
pipeline client that correlates replies with the commands that caused them.
"""
from .aggregator import Aggregator
from .config import ClientConfig
from .decoder import ArrayHeader, FrameDecoder
from .encoder import encode_command, encode_value
from .errors import (
    CommandRejectedAfterClose,
    IncompleteFrame,
    ProtocolLimitError,
    ProtocolSyntaxError,
    RespClientError,
    TransportError,
    UnsolicitedReplyError,
)
from .pipeline import ClientState, PendingCommand, PipelineClient, ReplyHandle
from .transport import AsyncioTransport, SocketTransport, attach, connect, open_async_connection
from .values import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    Array,
    BulkString,
    Integer,
    RespError,
    RespValue,
    SimpleString,
    to_python,
)

__version__ = "0.1.0"
__all__ = [
    "Aggregator",
    "Array",
    "ArrayHeader",
    "AsyncioTransport",
    "BulkString",
    "ClientConfig",
    "ClientState",
    "CommandRejectedAfterClose",
    "FrameDecoder",
    "IncompleteFrame",
    "Integer",
    "NULL_ARRAY",
    "NULL_BULK_STRING",
    "PendingCommand",
    "PipelineClient",
    "ProtocolLimitError",
    "ProtocolSyntaxError",
    "ReplyHandle",
    "RespClientError",
    "RespError",
    "RespValue",
    "SimpleString",
    "SocketTransport",
    "TransportError",
    "UnsolicitedReplyError",
    "attach",
    "connect",
    "encode_command",
    "encode_value",
    "open_async_connection",
    "to_python",
]
