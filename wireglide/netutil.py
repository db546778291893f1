"""Parsing and formatting of IP addresses, endpoints and address ranges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from ipaddress import AddressValueError, IPv4Address, IPv6Address
from typing import Tuple, Union

Address = Union[IPv4Address, IPv6Address]
IpRange4 = Tuple[IPv4Address, int]
IpRange6 = Tuple[IPv6Address, int]
IpRange = Union[IpRange4, IpRange6]

_PORT_MAX = 0xFFFF
_ULONG_MASK = (1 << 64) - 1
_UINT_MASK = (1 << 32) - 1

_IPPORT4 = re.compile(r"([0-9.]+):([0-9]+)")
_IPPORT6 = re.compile(r"\[([0-9a-f:]+)\]:([0-9]+)", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"\s*([+-]?)([0-9]*)")


def parse_inaddr(text: str) -> Address:
    """Parse an IPv4 or IPv6 address in its standard textual form."""
    try:
        return IPv4Address(text)
    except AddressValueError:
        pass
    if "%" not in text:
        try:
            return IPv6Address(text)
        except AddressValueError:
            pass
    raise ValueError(f"invalid IP address: {text!r}")


@total_ordering
@dataclass(frozen=True)
class Endpoint:
    """A UDP endpoint: an IPv4 or IPv6 address and a port."""

    address: Address
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.address, (IPv4Address, IPv6Address)):
            raise TypeError("address must be an IPv4Address or IPv6Address")
        if not 0 <= self.port <= _PORT_MAX:
            raise ValueError("port must fit in 16 bits")

    @property
    def is_v6(self) -> bool:
        return isinstance(self.address, IPv6Address)

    def sort_key(self) -> tuple[int, int, bytes]:
        """Key giving the endpoint order: family first, then port, then address."""
        return (1 if self.is_v6 else 0, self.port, self.address.packed)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Endpoint):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        if self.is_v6:
            return f"[{format_address(self.address)}]:{self.port}"
        return f"{format_address(self.address)}:{self.port}"


def _valid_port(digits: str) -> int | None:
    port = int(digits)
    return port if 0 < port <= _PORT_MAX else None


def parse_ipport(text: str) -> Endpoint:
    """Parse ``ip:port`` or ``[ip6]:port``; the port must be 1 to 65535."""
    match = _IPPORT4.fullmatch(text)
    if match:
        try:
            address: Address = IPv4Address(match[1])
        except AddressValueError:
            address = None
        port = _valid_port(match[2])
        if address is not None and port is not None:
            return Endpoint(address, port)
    else:
        match = _IPPORT6.fullmatch(text)
        if match:
            try:
                address = IPv6Address(match[1])
            except AddressValueError:
                address = None
            port = _valid_port(match[2])
            if address is not None and port is not None:
                return Endpoint(address, port)
    raise ValueError(f"invalid endpoint: {text!r}")


def _parse_prefix_length(text: str) -> int:
    """Read a leading decimal number leniently, as an unsigned int."""
    match = _LEADING_NUMBER.match(text)
    sign, digits = match[1], match[2]
    if not digits:
        return 0
    value = int(digits)
    if value > _ULONG_MASK:
        value = _ULONG_MASK
    elif sign == "-":
        value = -value & _ULONG_MASK
    return value & _UINT_MASK


def parse_iprange(text: str) -> IpRange:
    """Parse ``address/prefix`` into an (address, prefix length) pair."""
    parts = text.split("/")
    if len(parts) != 2:
        raise ValueError(f"invalid IP range: {text!r}")
    prefix = _parse_prefix_length(parts[1])
    address = parse_inaddr(parts[0])
    limit = 128 if isinstance(address, IPv6Address) else 32
    if prefix > limit:
        raise ValueError(f"invalid prefix length in {text!r}")
    return (address, prefix)


def format_address(addr: Address) -> str:
    """Format IPv4 as dotted quad and IPv6 as eight 4-digit hex groups."""
    if isinstance(addr, IPv6Address):
        return addr.exploded
    if isinstance(addr, IPv4Address):
        return str(addr)
    raise TypeError("expected an IPv4Address or IPv6Address")