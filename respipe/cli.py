#!/usr/bin/env python3
"""respipe -- interactive pipelined RESP2 client.

Reads one command per line from stdin and pipelines it to the server
without waiting for earlier replies.  Replies are printed as they arrive,
in command order.

How to run

    python3 -m respipe --host 127.0.0.1 --port 6379

    RESPIPE_HOST / RESPIPE_PORT set the defaults for --host / --port.
    Type ``quit`` (or send EOF) to exit; blank lines are ignored.
    Arguments are split shell-style, so ``SET k "hello world"`` sends
    three arguments.

Exit codes
    0   Input ended normally and every reply arrived.
    1   Could not connect, the connection failed, or replies timed out.
"""
from __future__ import annotations

import argparse
import dataclasses
import logging
import shlex
import sys
import threading
from typing import TextIO

from .config import ClientConfig
from .errors import CommandRejectedAfterClose
from .pipeline import ReplyHandle
from .transport import connect
from .values import Array, BulkString, Integer, RespError, RespValue, SimpleString


def parse_line(line: str) -> list[str]:
    """Split a command line, honouring quotes where they balance."""
    try:
        return shlex.split(line)
    except ValueError:
        return line.split()


def format_reply(value: RespValue) -> list[str]:
    """Render a reply as output lines, one per leaf, arrays flattened in order."""
    lines: list[str] = []
    stack: list[RespValue] = [value]
    while stack:
        v = stack.pop()
        if isinstance(v, Array):
            if v.items is None:
                lines.append("(null)")
            elif not v.items:
                lines.append("(empty array)")
            else:
                stack.extend(reversed(v.items))
        elif isinstance(v, SimpleString):
            lines.append(v.value)
        elif isinstance(v, RespError):
            lines.append(f"(error) {v.message}")
        elif isinstance(v, Integer):
            lines.append(str(v.value))
        elif isinstance(v, BulkString):
            lines.append("(null)" if v.value is None else v.text())
        else:
            raise TypeError(f"not a RESP value: {v!r}")
    return lines


class _ReplyPrinter:
    """Done-callback that prints each reply and counts how many it has shown."""

    def __init__(self, out: TextIO, err: TextIO) -> None:
        self.out = out
        self.err = err
        self.printed = 0
        self.failed = 0
        self._cond = threading.Condition()

    def __call__(self, handle: ReplyHandle) -> None:
        exc = handle.exception()
        if exc is not None:
            print(f"connection error: {exc}", file=self.err, flush=True)
        else:
            for line in format_reply(handle.result()):
                print(line, file=self.out)
            self.out.flush()
        with self._cond:
            self.printed += 1
            if exc is not None:
                self.failed += 1
            self._cond.notify_all()

    def wait_for(self, n: int, timeout: float) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self.printed >= n, timeout)


def main(argv: list[str] | None = None, stdin: TextIO | None = None, stdout: TextIO | None = None) -> int:
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    defaults = ClientConfig.from_env()

    ap = argparse.ArgumentParser(prog="respipe", description="Pipelined RESP2 client, one command per line.")
    ap.add_argument("--host", default=defaults.host)
    ap.add_argument("--port", type=int, default=defaults.port)
    ap.add_argument("--timeout", type=float, default=5.0, help="seconds to wait for outstanding replies on exit")
    ap.add_argument("--loglevel", default="error", choices=["debug", "info", "warning", "error"])
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.loglevel.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = dataclasses.replace(defaults, host=args.host, port=args.port)

    try:
        client = connect(config)
    except OSError as e:
        print(f"could not connect to {config.host}:{config.port}: {e}", file=sys.stderr)
        return 1

    printer = _ReplyPrinter(stdout, sys.stderr)
    print("Enter Redis commands (quit to end)", file=stdout, flush=True)
    sent = 0
    try:
        for raw in stdin:
            line = raw.strip()
            if line.lower() == "quit":
                break
            parts = parse_line(line)
            if not parts:
                continue
            try:
                handle = client.enqueue(parts)
            except CommandRejectedAfterClose as e:
                print(f"write failed: {client.close_reason or e}", file=sys.stderr)
                return 1
            handle.add_done_callback(printer)
            sent += 1

        if not printer.wait_for(sent, args.timeout):
            print(f"timed out after {args.timeout}s waiting for {client.pending_count} replies", file=sys.stderr)
            return 1
        return 1 if printer.failed else 0
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
