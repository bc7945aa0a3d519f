"""Args binary codec.

Fixed-width little-endian integers, one-byte booleans, and length-prefixed
UTF-8 strings. This is the argument encoding existing callers use for entry
points and the canonical storage encoding for every entity.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable

from ..errors import DecodeError

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")

U16_MAX = 0xFFFF
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF


def _check_range(value: int, limit: int, kind: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"{kind} value must be an integer, got {type(value).__name__}")
    if value < 0 or value > limit:
        raise DecodeError(f"{kind} value out of range: {value}")


class ArgsWriter:
    """Append-only builder for Args payloads.

    Example:
        payload = ArgsWriter().add_u64(7).add_string("ops").add_bool(True).serialize()
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def add_u16(self, value: int) -> ArgsWriter:
        _check_range(value, U16_MAX, "u16")
        self._buffer += _U16.pack(value)
        return self

    def add_u32(self, value: int) -> ArgsWriter:
        _check_range(value, U32_MAX, "u32")
        self._buffer += _U32.pack(value)
        return self

    def add_u64(self, value: int) -> ArgsWriter:
        _check_range(value, U64_MAX, "u64")
        self._buffer += _U64.pack(value)
        return self

    def add_bool(self, value: bool) -> ArgsWriter:
        self._buffer.append(1 if value else 0)
        return self

    def add_string(self, value: str) -> ArgsWriter:
        raw = value.encode("utf-8")
        self.add_u32(len(raw))
        self._buffer += raw
        return self

    def add_string_array(self, values: Iterable[str]) -> ArgsWriter:
        inner = ArgsWriter()
        for value in values:
            inner.add_string(value)
        body = inner.serialize()
        self.add_u32(len(body))
        self._buffer += body
        return self

    def add_u64_array(self, values: Iterable[int]) -> ArgsWriter:
        inner = ArgsWriter()
        for value in values:
            inner.add_u64(value)
        body = inner.serialize()
        self.add_u32(len(body))
        self._buffer += body
        return self

    def serialize(self) -> bytes:
        return bytes(self._buffer)


class ArgsReader:
    """Sequential reader over an Args payload.

    Every ``next_*`` call raises ``DecodeError`` naming ``field`` when the
    payload is exhausted or malformed.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def has_more(self) -> bool:
        return self.remaining > 0

    def _take(self, size: int, field: str) -> bytes:
        if size > self.remaining:
            raise DecodeError(f"Missing {field}")
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def next_u16(self, field: str = "u16") -> int:
        return _U16.unpack(self._take(_U16.size, field))[0]

    def next_u32(self, field: str = "u32") -> int:
        return _U32.unpack(self._take(_U32.size, field))[0]

    def next_u64(self, field: str = "u64") -> int:
        return _U64.unpack(self._take(_U64.size, field))[0]

    def next_bool(self, field: str = "bool") -> bool:
        raw = self._take(1, field)[0]
        if raw not in (0, 1):
            raise DecodeError(f"Invalid {field}: boolean byte {raw}")
        return raw == 1

    def next_string(self, field: str = "string") -> str:
        size = self.next_u32(field)
        raw = self._take(size, field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid {field}: not UTF-8") from exc

    def next_string_array(self, field: str = "string array") -> list[str]:
        size = self.next_u32(field)
        inner = ArgsReader(self._take(size, field))
        values = []
        while inner.has_more():
            values.append(inner.next_string(field))
        return values

    def next_u64_array(self, field: str = "u64 array") -> list[int]:
        size = self.next_u32(field)
        if size % _U64.size:
            raise DecodeError(f"Invalid {field}: length {size} is not a multiple of 8")
        inner = ArgsReader(self._take(size, field))
        return [inner.next_u64(field) for _ in range(size // _U64.size)]

    def expect_end(self, what: str = "payload") -> None:
        if self.has_more():
            raise DecodeError(f"Trailing bytes after {what}: {self.remaining}")


__all__ = ["ArgsWriter", "ArgsReader", "U16_MAX", "U32_MAX", "U64_MAX"]
