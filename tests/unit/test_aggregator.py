#!/usr/bin/env python3
from __future__ import annotations

import random

from respipe.aggregator import Aggregator
from respipe.errors import ProtocolLimitError, ProtocolSyntaxError
from respipe.values import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    Array,
    BulkString,
    Integer,
    RespError,
    SimpleString,
    to_python,
)

# One reply of every shape, back to back.
STREAM = (
    b"+OK\r\n"
    b"-WRONGTYPE Operation against a key holding the wrong kind of value\r\n"
    b":1000\r\n"
    b"$6\r\nfoo\r\nb\r\n"
    b"$0\r\n\r\n"
    b"$-1\r\n"
    b"*0\r\n"
    b"*-1\r\n"
    b"*3\r\n$3\r\nfoo\r\n$-1\r\n$3\r\nbar\r\n"
    b"*2\r\n*1\r\n:1\r\n$3\r\nfoo\r\n"
    b"*3\r\n*2\r\n*0\r\n*-1\r\n-ERR inner\r\n*1\r\n*1\r\n+deep\r\n"
)

EXPECTED = [
    SimpleString("OK"),
    RespError("WRONGTYPE Operation against a key holding the wrong kind of value"),
    Integer(1000),
    BulkString(b"foo\r\nb"),
    BulkString(b""),
    NULL_BULK_STRING,
    Array(()),
    NULL_ARRAY,
    Array((BulkString(b"foo"), NULL_BULK_STRING, BulkString(b"bar"))),
    Array((Array((Integer(1),)), BulkString(b"foo"))),
    Array((
        Array((Array(()), NULL_ARRAY)),
        RespError("ERR inner"),
        Array((Array((SimpleString("deep"),)),)),
    )),
]


def test_whole_stream():
    assert Aggregator().feed(STREAM) == EXPECTED


def test_nested_array_shape():
    (value,) = Aggregator().feed(b"*2\r\n*1\r\n:1\r\n$3\r\nfoo\r\n")
    assert value == Array([Array([Integer(1)]), BulkString(b"foo")])
    assert to_python(value) == [[1], b"foo"]


def test_nulls_distinct_from_empties():
    null_bulk, empty_bulk, null_arr, empty_arr = Aggregator().feed(b"$-1\r\n$0\r\n\r\n*-1\r\n*0\r\n")
    assert null_bulk.is_null and not empty_bulk.is_null
    assert null_arr.is_null and not empty_arr.is_null
    assert null_bulk != empty_bulk and null_arr != empty_arr
    assert to_python(null_arr) is None and to_python(empty_arr) == []


def test_every_split_point():
    for i in range(len(STREAM) + 1):
        agg = Aggregator()
        out = agg.feed(STREAM[:i]) + agg.feed(STREAM[i:])
        assert out == EXPECTED, f"split at {i}"
        assert agg.depth == 0


def test_byte_at_a_time():
    agg = Aggregator()
    out = []
    for b in STREAM:
        out.extend(agg.feed(bytes([b])))
    assert out == EXPECTED


def test_random_chunking():
    rng = random.Random(1234)
    for _ in range(200):
        agg = Aggregator()
        out = []
        i = 0
        while i < len(STREAM):
            n = rng.randint(1, 17)
            out.extend(agg.feed(STREAM[i:i + n]))
            i += n
        assert out == EXPECTED


def test_partial_array_keeps_stack():
    agg = Aggregator()
    assert agg.feed(b"*2\r\n*2\r\n:1\r\n") == []
    assert agg.depth == 2
    assert agg.feed(b":2\r\n") == []
    assert agg.depth == 1
    assert agg.feed(b"+x\r\n") == [Array((Array((Integer(1), Integer(2))), SimpleString("x")))]
    assert agg.depth == 0


def test_deep_nesting_without_recursion():
    depth = 400
    agg = Aggregator()
    (value,) = agg.feed(b"*1\r\n" * depth + b":7\r\n")
    for _ in range(depth):
        assert isinstance(value, Array) and len(value) == 1
        value = value[0]
    assert value == Integer(7)


def test_nesting_limit():
    agg = Aggregator(max_nesting_depth=3)
    assert agg.feed(b"*1\r\n*1\r\n*1\r\n:1\r\n") != []
    try:
        agg.feed(b"*1\r\n*1\r\n*1\r\n*1\r\n:1\r\n")
    except ProtocolLimitError as e:
        assert "nesting" in str(e)
    else:
        raise AssertionError("nesting limit not enforced")


def test_declared_element_limit():
    agg = Aggregator(max_array_elements=4)
    assert len(agg.feed(b"*2\r\n*2\r\n:1\r\n:2\r\n:3\r\n")) == 1
    # The counter restarts for each top-level reply.
    assert len(agg.feed(b"*4\r\n:1\r\n:2\r\n:3\r\n:4\r\n")) == 1
    try:
        agg.feed(b"*1000000000\r\n")
    except ProtocolLimitError:
        pass
    else:
        raise AssertionError("element limit not enforced")


def test_syntax_error_mid_array():
    agg = Aggregator()
    replies = agg.replies()
    agg.decoder.feed(b":1\r\n*2\r\n:2\r\n&bad\r\n")
    assert next(replies) == Integer(1)
    try:
        next(replies)
    except ProtocolSyntaxError:
        pass
    else:
        raise AssertionError("garbage inside an array was accepted")


def test_feed_keeps_replies_before_error():
    agg = Aggregator()
    try:
        agg.feed(b":1\r\n+OK\r\n?bad\r\n")
    except ProtocolSyntaxError as exc:
        assert exc.replies == (Integer(1), SimpleString("OK"))
    else:
        raise AssertionError("unknown type byte accepted")
    # The failure is sticky and later calls report no new replies.
    try:
        agg.feed(b":2\r\n")
    except ProtocolSyntaxError as exc:
        assert exc.replies == (Integer(1), SimpleString("OK"))
    else:
        raise AssertionError("aggregator recovered after a syntax error")


def test_values_are_immutable():
    (value,) = Aggregator().feed(b"*1\r\n:1\r\n")
    assert isinstance(value.items, tuple)
    try:
        value.items = ()
    except AttributeError:
        pass
    else:
        raise AssertionError("Array is mutable")
    assert Array([Integer(1)]) == Array((Integer(1),))


def main() -> int:
    test_whole_stream()
    test_nested_array_shape()
    test_nulls_distinct_from_empties()
    test_every_split_point()
    test_byte_at_a_time()
    test_random_chunking()
    test_partial_array_keeps_stack()
    test_deep_nesting_without_recursion()
    test_nesting_limit()
    test_declared_element_limit()
    test_syntax_error_mid_array()
    test_feed_keeps_replies_before_error()
    test_values_are_immutable()
    print("aggregator tests passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
