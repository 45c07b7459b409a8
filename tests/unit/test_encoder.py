#!/usr/bin/env python3
from __future__ import annotations

import redis

from respipe.aggregator import Aggregator
from respipe.encoder import encode_command, encode_value
from respipe.values import NULL_ARRAY, NULL_BULK_STRING, Array, BulkString, Integer, RespError, SimpleString


def redis_py_pack(*args) -> bytes:
    # Building a Connection does not open a socket; pack_command is pure.
    return b"".join(redis.Connection().pack_command(*args))


def test_set_command_bytes():
    assert encode_command(["SET", "key", "value"]) == b"*3\r\n$3\r\nSET\r\n$3\r\nkey\r\n$5\r\nvalue\r\n"
    assert encode_command(["PING"]) == b"*1\r\n$4\r\nPING\r\n"


def test_lengths_are_byte_lengths():
    assert encode_command(["SET", "k", "héllo"]) == b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$6\r\nh\xc3\xa9llo\r\n"
    blob = bytes(range(256))
    out = encode_command([b"SET", b"bin", blob])
    assert out.endswith(b"$256\r\n" + blob + b"\r\n")


def test_argument_types():
    assert encode_command(["INCRBY", "n", 10]) == encode_command(["INCRBY", "n", "10"])
    assert encode_command([b"GET", bytearray(b"k")]) == encode_command(["GET", "k"])
    assert encode_command(iter(["ECHO", ""])) == b"*2\r\n$4\r\nECHO\r\n$0\r\n\r\n"
    for bad in (["SET", "k", 1.5], ["SET", "k", None], ["SET", "k", True]):
        try:
            encode_command(bad)
        except TypeError:
            pass
        else:
            raise AssertionError(f"{bad!r} encoded")
    for bad in ([], "PING", b"PING"):
        try:
            encode_command(bad)
        except (TypeError, ValueError):
            pass
        else:
            raise AssertionError(f"{bad!r} encoded")


def test_matches_redis_py():
    cases = [
        ("PING",),
        ("SET", "user:1001:name", "Alice Cooper"),
        ("SET", "counter", 42),
        ("HSET", "h", "field", "välue"),
        ("SET", b"raw", b"\x00\r\n\xff"),
        ("ECHO", ""),
    ]
    for args in cases:
        assert encode_command(args) == redis_py_pack(*args), args


def test_encode_value_round_trip_through_aggregator():
    values = [
        SimpleString("OK"),
        RespError("ERR no such key"),
        Integer(-12),
        BulkString(b"a\r\nb"),
        NULL_BULK_STRING,
        NULL_ARRAY,
        Array(()),
        Array((Array((Integer(1),)), BulkString(b"foo"))),
    ]
    wire = b"".join(encode_value(v) for v in values)
    assert Aggregator().feed(wire) == values
    assert encode_value(Array((Array((Integer(1),)), BulkString(b"foo")))) == b"*2\r\n*1\r\n:1\r\n$3\r\nfoo\r\n"


def test_encode_value_rejects_line_breaks():
    for bad in (SimpleString("a\r\nb"), RespError("x\ny")):
        try:
            encode_value(bad)
        except ValueError:
            pass
        else:
            raise AssertionError(f"{bad!r} encoded")


def main() -> int:
    test_set_command_bytes()
    test_lengths_are_byte_lengths()
    test_argument_types()
    test_matches_redis_py()
    test_encode_value_round_trip_through_aggregator()
    test_encode_value_rejects_line_breaks()
    print("encoder tests passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
