#!/usr/bin/env python3
"""compare_with_redis_py.py -- Cross-check respipe replies against redis-py.

Purpose
    End-to-end sanity check for the respipe client against any
    Redis-compatible server, using the ``redis-py`` client library as the
    reference.  Useful after changes to the decoder, aggregator or pipeline.

What it does
    1. Opens one pipelined respipe connection and one redis-py connection to
       the same server.
    2. For each command in the case list, sends it through respipe (all
       commands pipelined up front) and through redis-py
       (``execute_command`` with response callbacks disabled, one at a time).
    3. Normalizes both replies to plain Python values and reports every
       mismatch.

    The two runs are sequential and each starts with FLUSHDB, so both see
    the same starting keyspace.  Error replies are compared by kind only,
    since redis-py strips some error prefixes.

How to run
    1. Start a Redis-compatible server (default 127.0.0.1:6379).
    2. Install the optional dependency:

           pip install -e ".[examples]"

    3. Run:

           python3 scripts/examples/compare_with_redis_py.py --port 6379

Exit codes
    0   Every reply matched.
    1   At least one mismatch, or a connection failure.
"""
from __future__ import annotations

import argparse
import sys
from typing import Any

import redis

from respipe import ClientConfig, RespError, connect, to_python

CASES: list[list[str]] = [
    ["PING"],
    ["ECHO", "hello world"],
    ["SET", "greeting", "héllo"],
    ["GET", "greeting"],
    ["GET", "missing"],
    ["INCR", "counter"],
    ["INCRBY", "counter", "41"],
    ["RPUSH", "list", "a", "b", "c"],
    ["LRANGE", "list", "0", "-1"],
    ["LRANGE", "nolist", "0", "-1"],
    ["HSET", "hash", "f1", "v1", "f2", "v2"],
    ["HGETALL", "hash"],
    ["MGET", "greeting", "missing", "counter"],
    ["LPUSH", "greeting", "x"],
    ["NOSUCHCOMMAND"],
]


def normalize(v: Any) -> Any:
    if isinstance(v, (RespError, redis.exceptions.ResponseError)):
        return {"error": True}
    if isinstance(v, list):
        return [normalize(x) for x in v]
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="replace")
    return v


def run_respipe(config: ClientConfig, timeout: float) -> list[Any]:
    client = connect(config)
    try:
        client.execute("FLUSHDB", timeout=timeout)
        handles = [client.enqueue(cmd) for cmd in CASES]
        return [normalize(to_python(h.result(timeout=timeout))) for h in handles]
    finally:
        client.close()


def run_redis_py(host: str, port: int) -> list[Any]:
    r = redis.Redis(host=host, port=port)
    # Raw replies: no per-command post-processing.
    r.response_callbacks.clear()
    out = []
    try:
        r.execute_command("FLUSHDB")
        for cmd in CASES:
            try:
                out.append(normalize(r.execute_command(*cmd)))
            except redis.exceptions.ResponseError as e:
                out.append(normalize(e))
    finally:
        r.close()
    return out


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=6379)
    ap.add_argument("--timeout", type=float, default=5.0)
    args = ap.parse_args()

    config = ClientConfig(host=args.host, port=args.port)
    try:
        ours = run_respipe(config, args.timeout)
        theirs = run_redis_py(args.host, args.port)
    except (OSError, redis.exceptions.ConnectionError) as e:
        print(f"connection failed: {e}", file=sys.stderr)
        return 1

    mismatches = []
    for cmd, a, b in zip(CASES, ours, theirs):
        if a != b:
            mismatches.append(f"{' '.join(cmd)}: respipe={a!r} redis-py={b!r}")

    if mismatches:
        print("reply mismatches:", file=sys.stderr)
        for m in mismatches:
            print(f" - {m}", file=sys.stderr)
        return 1

    print(f"all {len(CASES)} replies match redis-py")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
