"""The peer tables: by public key, by endpoint and by allowed address."""

from __future__ import annotations

import errno
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from ipaddress import IPv6Address, ip_address
from typing import Iterator, Optional

from .keys import Key256
from .netutil import Endpoint, IpRange
from .prefix import NetPrefix4, NetPrefix6
from .uapi import ClientSetCommand, ControlCommandError, InterfaceCommand

CLIENT_ID_MIN = 1
CLIENT_ID_MAX = (1 << 24) - 1


@dataclass(frozen=True)
class Config:
    """Interface configuration shared with the packet workers."""

    private_key: Key256 = field(default_factory=Key256)
    prefix4: NetPrefix4 = field(default_factory=NetPrefix4)
    prefix6: NetPrefix6 = field(default_factory=NetPrefix6)


@dataclass(eq=False)
class Client:
    """One configured peer."""

    pubkey: Key256
    endpoint: Endpoint
    index: int
    psk: bytes = bytes(32)
    keepalive: int = 0
    allowed_ips: frozenset = frozenset()


class _IdAllocator:
    def __init__(self, low: int = CLIENT_ID_MIN, high: int = CLIENT_ID_MAX) -> None:
        self._low = low
        self._high = high
        self._used: set[int] = set()
        self._next = low

    def _after(self, value: int) -> int:
        return value + 1 if value < self._high else self._low

    def alloc(self) -> int:
        if len(self._used) > self._high - self._low:
            raise ControlCommandError(errno.EBUSY)
        candidate = self._next
        while candidate in self._used:
            candidate = self._after(candidate)
        self._used.add(candidate)
        self._next = self._after(candidate)
        return candidate

    def free(self, value: int) -> None:
        self._used.discard(value)

    def clear(self) -> None:
        self._used.clear()
        self._next = self._low


class _RangeTable:
    """Non-overlapping inclusive integer ranges mapped to values."""

    def __init__(self) -> None:
        self._begins: list[int] = []
        self._ends: list[int] = []
        self._values: list[object] = []

    def _containing(self, key: int) -> int:
        pos = bisect_right(self._begins, key) - 1
        if pos >= 0 and self._ends[pos] >= key:
            return pos
        return -1

    def insert(self, begin: int, end: int, value: object) -> None:
        pos = bisect_right(self._begins, end)
        if pos > 0 and self._ends[pos - 1] >= begin:
            raise ControlCommandError(errno.EEXIST)
        self._begins.insert(pos, begin)
        self._ends.insert(pos, end)
        self._values.insert(pos, value)

    def erase(self, key: int) -> Optional[object]:
        pos = self._containing(key)
        if pos < 0:
            return None
        del self._begins[pos], self._ends[pos]
        return self._values.pop(pos)

    def lookup(self, key: int) -> Optional[object]:
        pos = self._containing(key)
        return self._values[pos] if pos >= 0 else None

    def clear(self) -> None:
        self._begins.clear()
        self._ends.clear()
        self._values.clear()


class PeerRegistry:
    """Keeps the peer tables consistent as peers are added and removed."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config if config is not None else Config()
        self._clients: dict[Key256, Client] = {}
        self._endpoints: dict[Endpoint, Client] = {}
        self._ip4 = _RangeTable()
        self._ip6 = _RangeTable()
        self._ids = _IdAllocator()

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[Client]:
        return iter(list(self._clients.values()))

    def set_private_key(self, key: Key256) -> None:
        """Replace the interface key, keeping the address prefixes."""
        self.config = replace(self.config, private_key=key)

    def _range_of(self, aip: IpRange) -> tuple[_RangeTable, int, int]:
        address, prefix = aip
        try:
            if isinstance(address, IPv6Address):
                begin, end = self.config.prefix6.get_range(address, prefix)
                return self._ip6, begin, end
            begin, end = self.config.prefix4.get_range(address, prefix)
            return self._ip4, begin, end
        except ValueError:
            raise ControlCommandError(errno.EINVAL) from None

    def _table_key(self, address) -> tuple[_RangeTable, int]:
        if isinstance(address, IPv6Address):
            return self._ip6, self.config.prefix6.reduce(address)
        return self._ip4, self.config.prefix4.reduce(address)

    def _drop_ranges(self, client: Client) -> None:
        for address, _prefix in client.allowed_ips:
            table, key = self._table_key(address)
            if table.erase(key) is not client:
                raise RuntimeError("allowed IP table out of step with peer")

    def _put_ranges(self, client: Client) -> None:
        for aip in client.allowed_ips:
            table, begin, end = self._range_of(aip)
            table.insert(begin, end, client)

    def add_client(self, cmd: ClientSetCommand) -> Optional[Client]:
        """Add or update a peer and return the peer it replaced, if any."""
        old = self._clients.get(cmd.public_key)
        if cmd.update_only and old is None:
            raise ControlCommandError(errno.ENOENT)
        if old is None and cmd.endpoint is None:
            raise ControlCommandError(errno.EINVAL)
        if cmd.endpoint is not None:
            owner = self._endpoints.get(cmd.endpoint)
            if owner is not None and owner is not old:
                raise ControlCommandError(errno.EEXIST)

        if old is None or cmd.replace_allowed_ips:
            allowed = frozenset(cmd.allowed_ip)
        else:
            allowed = old.allowed_ips | frozenset(cmd.allowed_ip)
        ranges = [self._range_of(aip) for aip in allowed]

        index = self._ids.alloc()
        new = Client(
            pubkey=cmd.public_key,
            endpoint=cmd.endpoint if cmd.endpoint is not None else old.endpoint,
            index=index,
            psk=(
                bytes(cmd.preshared_key) if cmd.preshared_key is not None
                else old.psk if old is not None else bytes(32)
            ),
            keepalive=(
                cmd.persistent_keepalive_interval
                if cmd.persistent_keepalive_interval is not None
                else old.keepalive if old is not None else 0
            ),
            allowed_ips=allowed,
        )

        if old is not None:
            self._drop_ranges(old)
        inserted: list[tuple[_RangeTable, int]] = []
        try:
            for table, begin, end in ranges:
                table.insert(begin, end, new)
                inserted.append((table, begin))
        except ControlCommandError:
            for table, begin in inserted:
                table.erase(begin)
            if old is not None:
                self._put_ranges(old)
            self._ids.free(index)
            raise

        self._clients[new.pubkey] = new
        if old is not None:
            del self._endpoints[old.endpoint]
            self._ids.free(old.index)
        self._endpoints[new.endpoint] = new
        return old

    def remove_client(self, public_key: Key256) -> Optional[Client]:
        """Remove a peer and return it, or return None if it is unknown."""
        old = self._clients.get(public_key)
        if old is None:
            return None
        self._drop_ranges(old)
        del self._endpoints[old.endpoint]
        del self._clients[public_key]
        self._ids.free(old.index)
        return old

    def flush(self) -> None:
        """Remove every peer."""
        self._ids.clear()
        self._ip4.clear()
        self._ip6.clear()
        self._endpoints.clear()
        self._clients.clear()

    def apply_set(self, iface_cmd: InterfaceCommand, cmds) -> int:
        """Apply a parsed ``set`` command and return its errno (0 on success).

        Peer commands run in order and stop at the first failure; those
        already applied stay applied.
        """
        if iface_cmd.has_privkey:
            self.set_private_key(iface_cmd.private_key)
        try:
            if iface_cmd.replace_peers:
                self.flush()
            for cmd in cmds:
                if cmd.remove:
                    self.remove_client(cmd.public_key)
                else:
                    self.add_client(cmd)
        except ControlCommandError as exc:
            return exc.err
        return 0

    def find_by_key(self, key: Key256) -> Optional[Client]:
        return self._clients.get(key)

    def find_by_endpoint(self, endpoint: Endpoint) -> Optional[Client]:
        return self._endpoints.get(endpoint)

    def lookup_ip(self, address) -> Optional[Client]:
        """Return the peer whose allowed IPs cover ``address``."""
        if isinstance(address, (str, bytes, int)):
            address = ip_address(address)
        table, key = self._table_key(address)
        return table.lookup(key)