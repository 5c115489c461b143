"""Order-preserving byte encodings.

``encode_number`` maps floats to 16 hex digits whose lexicographic order is
ascending numeric order. ``encode_value`` maps JSON-like values to
type-tagged bytes with the same property within and across types::

    None < False < True < numbers < bytes < str < list/tuple < dict
"""

from __future__ import annotations

import math
import struct
from typing import Any


_DOUBLE = struct.Struct(">d")
_UINT64 = struct.Struct(">Q")
_SIGN_BIT = 1 << 63
_ALL_BITS = (1 << 64) - 1

NULL = 0x10
FALSE = 0x20
TRUE = 0x21
NUMBER = 0x40
BYTES = 0x60
STRING = 0x70
ARRAY = 0xA0
OBJECT = 0xB0
END = 0x00
ESCAPE = 0x01


def _sortable_bits(value: float) -> int:
    if math.isnan(value):
        raise ValueError("NaN has no position in an ordered encoding")
    if value == 0.0:
        value = 0.0  # fold -0.0 into +0.0
    (bits,) = _UINT64.unpack(_DOUBLE.pack(value))
    if bits & _SIGN_BIT:
        return bits ^ _ALL_BITS
    return bits | _SIGN_BIT


def _float_from_sortable(bits: int) -> float:
    if bits & _SIGN_BIT:
        bits ^= _SIGN_BIT
    else:
        bits ^= _ALL_BITS
    (value,) = _DOUBLE.unpack(_UINT64.pack(bits))
    return value


def encode_number(value: float) -> str:
    """Return 16 lowercase hex digits ordered like the number itself."""
    return f"{_sortable_bits(float(value)):016x}"


def decode_number(encoded: str) -> float:
    if len(encoded) != 16:
        raise ValueError(f"Encoded number must be 16 hex digits, got {encoded!r}")
    return _float_from_sortable(int(encoded, 16))


def _escape(raw: bytes) -> bytes:
    return raw.replace(b"\x01", b"\x01\x02").replace(b"\x00", b"\x01\x01")


def encode_value(value: Any) -> bytes:
    """Encode a JSON-like value into order-preserving bytes."""
    if value is None:
        return bytes([NULL])
    if value is False:
        return bytes([FALSE])
    if value is True:
        return bytes([TRUE])
    if isinstance(value, (int, float)):
        return bytes([NUMBER]) + _UINT64.pack(_sortable_bits(float(value)))
    if isinstance(value, (bytes, bytearray)):
        return bytes([BYTES]) + _escape(bytes(value)) + bytes([END])
    if isinstance(value, str):
        return bytes([STRING]) + _escape(value.encode("utf-8")) + bytes([END])
    if isinstance(value, (list, tuple)):
        return bytes([ARRAY]) + b"".join(encode_value(item) for item in value) + bytes([END])
    if isinstance(value, dict):
        pairs = sorted(encode_value(key) + encode_value(item) for key, item in value.items())
        return bytes([OBJECT]) + b"".join(pairs) + bytes([END])
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


__all__ = ["decode_number", "encode_number", "encode_value"]
