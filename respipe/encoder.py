from __future__ import annotations

from typing import Iterable, Union

from .values import Array, BulkString, Integer, RespError, RespValue, SimpleString

Arg = Union[str, bytes, bytearray, memoryview, int]


def _arg_to_bytes(a: Arg) -> bytes:
    if isinstance(a, bytes):
        return a
    if isinstance(a, (bytearray, memoryview)):
        return bytes(a)
    if isinstance(a, str):
        return a.encode("utf-8", errors="surrogatepass")
    if isinstance(a, int) and not isinstance(a, bool):
        return str(a).encode()
    raise TypeError(f"command arguments must be str, bytes or int, not {type(a).__name__}")


def encode_command(args: Iterable[Arg]) -> bytes:
    """Encode a command as a RESP array of bulk strings.

    Lengths are byte lengths of the encoded argument, so non-ASCII text and
    binary payloads are framed correctly.
    """
    if isinstance(args, (str, bytes, bytearray, memoryview)):
        raise TypeError("a command is a sequence of arguments, not a single string")
    parts = [_arg_to_bytes(a) for a in args]
    if not parts:
        raise ValueError("cannot encode an empty command")
    out = [f"*{len(parts)}\r\n".encode()]
    for b in parts:
        out.append(f"${len(b)}\r\n".encode())
        out.append(b)
        out.append(b"\r\n")
    return b"".join(out)


def _line(tag: bytes, text: str) -> bytes:
    if "\r" in text or "\n" in text:
        raise ValueError(f"{tag.decode()} line may not contain CR or LF: {text!r}")
    return tag + text.encode("utf-8") + b"\r\n"


def encode_value(value: RespValue) -> bytes:
    """Serialize any reply value back to its RESP2 wire form."""
    if isinstance(value, SimpleString):
        return _line(b"+", value.value)
    if isinstance(value, RespError):
        return _line(b"-", value.message)
    if isinstance(value, Integer):
        return f":{value.value}\r\n".encode()
    if isinstance(value, BulkString):
        if value.value is None:
            return b"$-1\r\n"
        return f"${len(value.value)}\r\n".encode() + value.value + b"\r\n"
    if isinstance(value, Array):
        if value.items is None:
            return b"*-1\r\n"
        out = [f"*{len(value.items)}\r\n".encode()]
        out.extend(encode_value(v) for v in value.items)
        return b"".join(out)
    raise TypeError(f"not a RESP value: {value!r}")
