"""Mapping of IP networks onto integer key ranges for range tables."""

from __future__ import annotations

from ipaddress import IPv4Address, IPv6Address

_ULONG_BITS = 64
_ULONG_MASK = (1 << _ULONG_BITS) - 1
_MASK128 = (1 << 128) - 1


def load_ip6(addr) -> int:
    """Return an IPv6 address as a 128-bit integer."""
    if isinstance(addr, (bytes, bytearray, memoryview)):
        raw = bytes(addr)
        if len(raw) != 16:
            raise ValueError("IPv6 address must be 16 bytes")
        return int.from_bytes(raw, "big")
    return int(IPv6Address(addr))


class NetPrefix4:
    """Keys IPv4 addresses by their full 32-bit value."""

    bits = 32

    def __init__(self) -> None:
        self.quantum = 0

    def get_range(self, addr, prefix: int) -> tuple[int, int]:
        """Return the first and last key covered by ``addr/prefix``."""
        if not 0 <= prefix <= 32:
            raise ValueError("IPv4 prefix length must be between 0 and 32")
        mask = (1 << (32 - prefix)) - 1
        ip = int(IPv4Address(addr))
        return (ip & ~mask, ip | mask)

    def reduce(self, addr) -> int:
        """Return the key of a single address."""
        return int(IPv4Address(addr))

    def __repr__(self) -> str:
        return "NetPrefix4()"


class NetPrefix6:
    """Keys IPv6 addresses by 64 bits, dropping ``quantum`` low-order bits.

    The quantum follows from the length of the interface prefix: anything
    longer than 64 bits is shifted so that its host part fits in a key.
    """

    bits = _ULONG_BITS

    def __init__(self, prefix: int = 0) -> None:
        if not 0 <= prefix <= 128:
            raise ValueError("IPv6 prefix length must be between 0 and 128")
        self.quantum = max(prefix, self.bits) - self.bits

    def get_range(self, addr, prefix: int) -> tuple[int, int]:
        """Return the first and last key covered by ``addr/prefix``."""
        if not self.quantum <= prefix <= 128:
            raise ValueError(
                f"IPv6 prefix length must be between {self.quantum} and 128"
            )
        mask = (1 << (128 - prefix)) - 1
        ip = load_ip6(addr)
        begin = ((ip & ~mask) & _MASK128) >> self.quantum
        end = (ip | mask) >> self.quantum
        return (begin & _ULONG_MASK, end & _ULONG_MASK)

    def reduce(self, addr) -> int:
        """Return the key of a single address."""
        return (load_ip6(addr) >> self.quantum) & _ULONG_MASK

    def __repr__(self) -> str:
        return f"NetPrefix6(quantum={self.quantum})"