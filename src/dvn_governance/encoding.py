"""Byte and hex helpers shared by the chain adapters."""
from __future__ import annotations


def trim_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def hex_to_bytes(value: str) -> bytes:
    """Decode hex, left-padding odd-length input with a zero nibble."""
    raw = trim_0x(value)
    if len(raw) % 2:
        raw = "0" + raw
    return bytes.fromhex(raw)


def uint_be(value: int, width: int) -> bytes:
    """Unsigned big-endian integer in exactly ``width`` bytes."""
    if value < 0:
        raise ValueError(f"{value} is negative")
    return value.to_bytes(width, "big")


def uleb128(value: int) -> bytes:
    """ULEB128 encoding, as used for BCS length prefixes."""
    if value < 0:
        raise ValueError("uleb128 requires a non-negative value")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def bcs_bytes(data: bytes) -> bytes:
    """BCS ``vector<u8>``: ULEB128 length followed by the bytes."""
    return uleb128(len(data)) + data
