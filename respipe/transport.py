"""Transport adapters that connect a :class:`PipelineClient` to a socket.

The client itself never does I/O.  These adapters give it a ``write``
method and push whatever the peer sends into ``client.feed``, reporting
EOF and socket errors through ``on_closed`` / ``on_error``.
"""
from __future__ import annotations

import asyncio
import logging
import socket
import threading

from .config import ClientConfig
from .errors import RespClientError
from .pipeline import PipelineClient

logger = logging.getLogger(__name__)


class SocketTransport:
    """Blocking socket with a daemon thread reading replies."""

    def __init__(self, sock: socket.socket, read_size: int = 4096) -> None:
        self.sock = sock
        self.read_size = read_size
        self._reader: threading.Thread | None = None
        self._closing = False

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def start(self, client: PipelineClient) -> None:
        self._reader = threading.Thread(
            target=self._read_loop, args=(client,), name="respipe-reader", daemon=True
        )
        self._reader.start()

    def join(self, timeout: float | None = None) -> None:
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout)

    def _read_loop(self, client: PipelineClient) -> None:
        try:
            while True:
                try:
                    chunk = self.sock.recv(self.read_size)
                except OSError as exc:
                    if self._closing:
                        client.on_closed()
                    else:
                        logger.warning("socket read failed: %s", exc)
                        client.on_error(exc)
                    return
                if not chunk:
                    logger.debug("peer closed the connection")
                    client.on_closed()
                    return
                try:
                    client.feed(chunk)
                except RespClientError as exc:
                    # The client is Closed and its pending commands already failed.
                    logger.debug("reader stopping after fatal stream error: %s", exc)
                    return
        finally:
            self.close()

    def close(self, timeout: float = 1.0) -> None:
        """Shut the socket down and wait up to *timeout* for the reader to exit."""
        if not self._closing:
            self._closing = True
            try:
                self.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self.sock.close()
        self.join(timeout)


def connect(config: ClientConfig | None = None) -> PipelineClient:
    """Open a TCP connection and return a client driven by a reader thread."""
    config = config if config is not None else ClientConfig()
    sock = socket.create_connection((config.host, config.port), timeout=config.connect_timeout)
    sock.settimeout(None)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    return attach(sock, config)


def attach(sock: socket.socket, config: ClientConfig | None = None) -> PipelineClient:
    """Wrap an already connected socket."""
    config = config if config is not None else ClientConfig()
    transport = SocketTransport(sock, config.read_size)
    client = PipelineClient(transport, config)
    transport.start(client)
    logger.debug("attached client to %s", sock)
    return client


class AsyncioTransport(asyncio.Protocol):
    """Event-loop transport: replies are decoded inside ``data_received``."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self.client: PipelineClient | None = None
        self._transport: asyncio.Transport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self.client = PipelineClient(self, self.config)

    def write(self, data: bytes) -> None:
        if self._transport is None or self._transport.is_closing():
            raise ConnectionResetError("transport is closing")
        self._transport.write(data)

    def data_received(self, data: bytes) -> None:
        try:
            self.client.feed(data)
        except RespClientError as exc:
            logger.debug("closing transport after fatal stream error: %s", exc)
            self._transport.close()

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is None:
            self.client.on_closed()
        else:
            self.client.on_error(exc)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()


async def open_async_connection(config: ClientConfig | None = None) -> PipelineClient:
    config = config if config is not None else ClientConfig()
    loop = asyncio.get_running_loop()
    _, protocol = await asyncio.wait_for(
        loop.create_connection(lambda: AsyncioTransport(config), config.host, config.port),
        config.connect_timeout,
    )
    return protocol.client
