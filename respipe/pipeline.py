"""Pipelined command/reply correlation.

RESP carries no request ids: a server answers the commands of one
connection strictly in the order it received them.  The client therefore
keeps a FIFO of pending commands and hands the N-th complete reply to the
N-th command still waiting.  A pending command is never skipped, even if
its caller stopped waiting for it.

Two entry points may run on different threads:

* ``enqueue`` (producer): encode, append to the queue, write to the transport.
* ``feed`` (consumer): decode received bytes and resolve the queue head.

Queue mutation is guarded by one lock.  A second lock serializes
append+write pairs so that queue order always equals wire order.  A third
(re-entrant) lock covers decoding and delivery; shutdown takes it too, so a
close or error raised on another thread waits for the replies already being
delivered and pending commands always complete in FIFO order.  Result
slots are ``concurrent.futures.Future`` objects, assigned exactly once and
resolved outside the queue lock.
"""
from __future__ import annotations

import asyncio
from collections import deque
from concurrent.futures import Future
import enum
import logging
import threading
from typing import Any, Callable, Iterable, Protocol

from .aggregator import Aggregator
from .config import ClientConfig
from .encoder import Arg, encode_command
from .errors import (
    CommandRejectedAfterClose,
    ProtocolSyntaxError,
    RespClientError,
    TransportError,
    UnsolicitedReplyError,
)
from .values import RespValue

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def write(self, data: bytes) -> None: ...


class ClientState(enum.Enum):
    IDLE = "connected-idle"
    PENDING = "connected-with-pending"
    CLOSED = "closed"


class ReplyHandle:
    """The caller's view of one in-flight command.

    Block with :meth:`result`, poll with :meth:`done`, or ``await`` the
    handle from a coroutine.  A timed-out wait only gives up the wait; the
    command keeps its place in the queue.
    """

    def __init__(self, command: tuple[Arg, ...]) -> None:
        self.command = command
        self._future: Future = Future()
        # A running future cannot be cancelled, so the slot is always filled by the client.
        self._future.set_running_or_notify_cancel()

    def result(self, timeout: float | None = None) -> RespValue:
        return self._future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout)

    def done(self) -> bool:
        return self._future.done()

    def add_done_callback(self, fn: Callable[["ReplyHandle"], Any]) -> None:
        self._future.add_done_callback(lambda _f: fn(self))

    def __await__(self):
        return asyncio.wrap_future(self._future).__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"<ReplyHandle {self.command[:1]!r} {state}>"


class PendingCommand:
    """Encoded bytes plus the single-assignment result slot."""

    __slots__ = ("payload", "handle")

    def __init__(self, payload: bytes, handle: ReplyHandle) -> None:
        self.payload = payload
        self.handle = handle

    def resolve(self, value: RespValue) -> None:
        self.handle._future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        self.handle._future.set_exception(exc)


class PipelineClient:
    def __init__(self, transport: Transport, config: ClientConfig | None = None) -> None:
        self.transport = transport
        self.config = config if config is not None else ClientConfig()
        self._aggregator = Aggregator.from_config(self.config)
        self._queue: deque[PendingCommand] = deque()
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._feed_lock = threading.RLock()
        self._closed = False
        self._close_reason: RespClientError | None = None

    @property
    def state(self) -> ClientState:
        with self._lock:
            if self._closed:
                return ClientState.CLOSED
            return ClientState.PENDING if self._queue else ClientState.IDLE

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def close_reason(self) -> RespClientError | None:
        """The error that moved the client to Closed, if any."""
        return self._close_reason

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def enqueue(self, command: Iterable[Arg]) -> ReplyHandle:
        """Send *command* and return a handle for its reply.

        Raises :class:`CommandRejectedAfterClose` if the client is Closed,
        and ``TypeError``/``ValueError`` for arguments that cannot be
        encoded.  Neither touches the queue.
        """
        if self._closed:
            raise CommandRejectedAfterClose("client is closed")
        if isinstance(command, (str, bytes, bytearray, memoryview)):
            raise TypeError("a command is a sequence of arguments, not a single string")
        args = tuple(command)
        payload = encode_command(args)
        handle = ReplyHandle(args)
        pending = PendingCommand(payload, handle)

        write_error: OSError | None = None
        with self._send_lock:
            with self._lock:
                if self._closed:
                    raise CommandRejectedAfterClose("client is closed")
                self._queue.append(pending)
            logger.debug("enqueue %r (%d bytes)", args[:1], len(payload))
            try:
                self.transport.write(payload)
            except OSError as exc:
                write_error = exc
        # on_error runs outside the send lock; shutdown waits for any delivery in progress.
        if write_error is not None:
            logger.warning("transport write failed: %s", write_error)
            self.on_error(write_error)
        return handle

    def execute(self, *args: Arg, timeout: float | None = None) -> RespValue:
        """Enqueue one command and block until its reply arrives."""
        return self.enqueue(args).result(timeout)

    def feed(self, data: bytes) -> None:
        """Drive decoding from a chunk of received bytes.

        Each complete reply resolves the oldest pending command.  A protocol
        error or an unsolicited reply closes the client, fails every pending
        command and is then raised to the caller.
        """
        with self._feed_lock:
            if self._closed:
                logger.debug("dropping %d bytes received after close", len(data))
                return
            try:
                self._aggregator.decoder.feed(data)
                for value in self._aggregator.replies():
                    self._deliver(value)
            except ProtocolSyntaxError as exc:
                logger.warning("protocol error, closing: %s", exc)
                self._shutdown(exc)
                raise

    on_bytes_received = feed

    def _deliver(self, value: RespValue) -> None:
        with self._lock:
            pending = self._queue.popleft() if self._queue else None
        if pending is None:
            exc = UnsolicitedReplyError(f"reply with no pending command: {value!r}")
            logger.warning("%s", exc)
            self._shutdown(exc)
            raise exc
        pending.resolve(value)

    def on_closed(self) -> None:
        self._shutdown(TransportError("connection closed"))

    def on_error(self, err: BaseException) -> None:
        exc = TransportError(f"connection failed: {err}")
        exc.__cause__ = err
        self._shutdown(exc)

    def close(self) -> None:
        """Fail whatever is still pending and close the transport.

        The transport is closed even when the client already reached Closed
        through an error, so its socket and reader never outlive the client.
        """
        self.on_closed()
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def _shutdown(self, exc: RespClientError) -> None:
        with self._feed_lock:
            with self._lock:
                if self._closed:
                    return
                self._closed = True
                self._close_reason = exc
                pending = list(self._queue)
                self._queue.clear()
            if pending:
                logger.debug("failing %d pending commands: %s", len(pending), exc)
            for p in pending:
                p.fail(exc)
