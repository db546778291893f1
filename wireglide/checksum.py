"""Internet (ones' complement) checksums for IP, TCP and UDP.

All 16-bit values are in network byte order: packing a result with
``struct.pack("!H", value)`` gives the bytes that go on the wire.
"""

from __future__ import annotations

import sys
from array import array
from typing import Union

IPPROTO_TCP = 6
IPPROTO_UDP = 17

_MASK64 = (1 << 64) - 1

_IP4_ADDR_OFFSET = 12
_IP4_ADDR_SIZE = 4
_IP6_ADDR_OFFSET = 8
_IP6_ADDR_SIZE = 16

Buffer = Union[bytes, bytearray, memoryview]


def _fold64(value: int) -> int:
    while value > _MASK64:
        value = (value & _MASK64) + (value >> 64)
    return value


def checksum_nofold(data: Buffer, initial: int = 0) -> int:
    """Add ``data`` to a 64-bit running sum with end-around carry, unfolded."""
    if not 0 <= initial <= _MASK64:
        raise ValueError("initial sum must fit in 64 bits")
    raw = bytes(data)
    if len(raw) % 2:
        raw += b"\0"
    words = array("H", raw)
    if sys.byteorder == "little":
        words.byteswap()
    return _fold64(initial + sum(words))


def fold_complement(value: int) -> int:
    """Fold a running sum to 16 bits and return its ones' complement."""
    if value < 0:
        raise ValueError("sum must be non-negative")
    while value >> 16:
        value = (value & 0xFFFF) + (value >> 16)
    return ~value & 0xFFFF


def checksum(data: Buffer, initial: int = 0) -> int:
    """Return the finished checksum of ``data`` starting from ``initial``."""
    return fold_complement(checksum_nofold(data, initial))


def _address_bytes(addr) -> bytes:
    packed = getattr(addr, "packed", None)
    return bytes(packed if packed is not None else addr)


def pseudo_header_checksum_nofold(proto: int, src, dst, l4_len: int) -> int:
    """Return the unfolded sum of a TCP/UDP pseudo-header.

    ``src`` and ``dst`` are packed addresses or ``ipaddress`` objects.
    """
    src_bytes = _address_bytes(src)
    dst_bytes = _address_bytes(dst)
    if len(src_bytes) <= 1 or len(dst_bytes) <= 1:
        raise ValueError("addresses must be longer than one byte")
    if len(src_bytes) != len(dst_bytes):
        raise ValueError("source and destination addresses differ in size")
    if not 0 <= proto <= 0xFF:
        raise ValueError("protocol must fit in 8 bits")
    if not 0 <= l4_len <= 0xFFFF:
        raise ValueError("layer 4 length must fit in 16 bits")
    total = checksum_nofold(src_bytes, 0)
    total = checksum_nofold(dst_bytes, total)
    tail = proto.to_bytes(2, "big") + l4_len.to_bytes(2, "big")
    return checksum_nofold(tail, total)


def pseudo_header_checksum(proto: int, src, dst, l4_len: int) -> int:
    """Return the folded, complemented checksum of a pseudo-header."""
    return fold_complement(pseudo_header_checksum_nofold(proto, src, dst, l4_len))


def calc_l4_checksum(ippkt: Buffer, isv6: bool, istcp: bool, csum_start: int) -> int:
    """Compute the TCP or UDP checksum of an IP packet.

    The layer 4 header starts at ``csum_start``; its checksum field is
    summed as it stands, so it should be zero when computing a fresh value.
    """
    pkt = memoryview(bytes(ippkt))
    if isv6:
        offset, size = _IP6_ADDR_OFFSET, _IP6_ADDR_SIZE
    else:
        offset, size = _IP4_ADDR_OFFSET, _IP4_ADDR_SIZE
    if len(pkt) < offset + 2 * size:
        raise ValueError("packet too short for an IP header")
    if not 0 <= csum_start <= len(pkt):
        raise ValueError("checksum start lies outside the packet")
    src = pkt[offset:offset + size]
    dst = pkt[offset + size:offset + 2 * size]
    proto = IPPROTO_TCP if istcp else IPPROTO_UDP
    l4_len = (len(pkt) - csum_start) & 0xFFFF
    initial = pseudo_header_checksum_nofold(proto, src, dst, l4_len)
    return checksum(pkt[csum_start:], initial)