"""256-bit keys and their textual forms."""

from __future__ import annotations

import string
from dataclasses import dataclass

from .base64 import decode, encode

KEY_SIZE = 32
_HEX_DIGITS = frozenset(string.hexdigits)
_BASE64_KEY_LEN = 44


@dataclass(frozen=True, order=True)
class Key256:
    """A 32-byte key, ordered lexicographically by its bytes."""

    key: bytes = bytes(KEY_SIZE)

    def __post_init__(self) -> None:
        raw = bytes(self.key)
        if len(raw) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(raw)}")
        object.__setattr__(self, "key", raw)

    def __bytes__(self) -> bytes:
        return self.key

    def to_base64(self) -> str:
        """Return the padded base64 form of the key."""
        return encode(self.key)

    def __str__(self) -> str:
        return self.to_base64()


def parse_keybytes(text: str) -> Key256:
    """Parse a key given as 64 hex digits or as 44 characters of base64."""
    if len(text) == 2 * KEY_SIZE and all(ch in _HEX_DIGITS for ch in text):
        return Key256(bytes.fromhex(text))
    if len(text) == _BASE64_KEY_LEN and text.endswith("="):
        raw, consumed = decode(text)
        if consumed == _BASE64_KEY_LEN - 1 and len(raw) == KEY_SIZE:
            return Key256(raw)
    raise ValueError("invalid key")