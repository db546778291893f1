"""Padded base64 encoding with a lenient, prefix-consuming decoder."""

from __future__ import annotations

_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_INVERSE = {ch: value for value, ch in enumerate(_ALPHABET)}


def encoded_size(n: int) -> int:
    """Return the number of characters needed to encode ``n`` octets."""
    return 4 * ((n + 2) // 3)


def decoded_size(n: int) -> int:
    """Return the number of octets that ``n`` base64 characters decode to at most."""
    return n // 4 * 3


def _sextets(value: int, count: int) -> str:
    shifts = (18, 12, 6, 0)[:count]
    return "".join(_ALPHABET[(value >> shift) & 0x3F] for shift in shifts)


def encode(data: bytes | bytearray | memoryview) -> str:
    """Encode octets as a padded base64 string."""
    raw = bytes(data)
    whole = len(raw) - len(raw) % 3
    parts = [
        _sextets(int.from_bytes(raw[start:start + 3], "big"), 4)
        for start in range(0, whole, 3)
    ]
    tail = raw[whole:]
    if len(tail) == 2:
        parts.append(_sextets(int.from_bytes(tail + b"\0", "big"), 3) + "=")
    elif len(tail) == 1:
        parts.append(_sextets(int.from_bytes(tail + b"\0\0", "big"), 2) + "==")
    return "".join(parts)


def _pack(quad: list[int]) -> bytes:
    value = (quad[0] << 18) | (quad[1] << 12) | (quad[2] << 6) | quad[3]
    return value.to_bytes(3, "big")


def decode(text: str | bytes | bytearray | memoryview) -> tuple[bytes, int]:
    """Decode a base64 string.

    Decoding stops at the first ``=`` or at the first character outside the
    alphabet.  Returns the decoded octets and the number of characters read.
    """
    if not isinstance(text, str):
        text = bytes(text).decode("latin-1")
    out = bytearray()
    quad: list[int] = []
    consumed = 0
    for ch in text:
        if ch == "=":
            break
        value = _INVERSE.get(ch)
        if value is None:
            break
        consumed += 1
        quad.append(value)
        if len(quad) == 4:
            out += _pack(quad)
            quad.clear()
    if quad:
        out += _pack(quad + [0] * (4 - len(quad)))[: len(quad) - 1]
    return bytes(out), consumed