"""Line framing and parsing of the text configuration protocol."""

from __future__ import annotations

import errno
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from .keys import Key256, parse_keybytes
from .netutil import Endpoint, IpRange, parse_ipport, parse_iprange

MAX_LINE_LENGTH = 256
MAX_LINES = 1024
KEEPALIVE_MAX = 65535

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


class ControlClientError(Exception):
    """The client broke the framing rules and must be disconnected."""


class ControlCommandError(Exception):
    """A command failed; ``err`` is the errno value reported to the client."""

    def __init__(self, err: int) -> None:
        super().__init__(os.strerror(err))
        self.err = err


@dataclass
class InterfaceCommand:
    """Interface-wide settings carried by a ``set`` command."""

    private_key: Optional[Key256] = None
    replace_peers: bool = False

    @property
    def has_privkey(self) -> bool:
        return self.private_key is not None


@dataclass
class ClientSetCommand:
    """Changes requested for one peer."""

    public_key: Key256
    remove: bool = False
    update_only: bool = False
    preshared_key: Optional[bytes] = None
    endpoint: Optional[Endpoint] = None
    persistent_keepalive_interval: Optional[int] = 0
    replace_allowed_ips: bool = False
    allowed_ip: List[IpRange] = field(default_factory=list)


class LineAccumulator:
    """Collects bytes into commands: groups of lines ended by a blank line."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def feed(self, data: Union[bytes, bytearray, memoryview, str]) -> list[list[str]]:
        """Add received data and return every command it completes.

        Raises ``ControlClientError`` on a NUL byte, a line longer than
        256 characters or a command of 1024 lines or more.
        """
        text = data if isinstance(data, str) else bytes(data).decode("latin-1")
        commands: list[list[str]] = []
        for ch in text:
            if ch == "\n":
                if not self._lines:
                    continue
                if self._lines[-1] == "":
                    self._lines.pop()
                    commands.append(self._lines)
                    self._lines = []
                else:
                    self._lines.append("")
                    if len(self._lines) > MAX_LINES:
                        raise ControlClientError("too many lines in command")
            elif ch == "\0":
                raise ControlClientError("NUL byte in input")
            else:
                if not self._lines:
                    self._lines.append("")
                self._lines[-1] += ch
                if len(self._lines[-1]) > MAX_LINE_LENGTH:
                    raise ControlClientError("command line too long")
        return commands


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match[1]) if match else 0


def _key(text: str) -> Key256:
    try:
        return parse_keybytes(text)
    except ValueError:
        raise ControlCommandError(errno.EINVAL) from None


def _value(line: str, name: str) -> Optional[str]:
    prefix = name + "="
    return line[len(prefix):] if line.startswith(prefix) else None


def _parse_peer_line(line: str, cmd: ClientSetCommand) -> None:
    if line == "remove=true":
        cmd.remove = True
    elif line == "update_only=true":
        cmd.update_only = True
    elif (value := _value(line, "preshared_key")) is not None:
        cmd.preshared_key = _key(value).key
    elif (value := _value(line, "endpoint")) is not None:
        try:
            cmd.endpoint = parse_ipport(value)
        except ValueError:
            raise ControlCommandError(errno.EINVAL) from None
    elif (value := _value(line, "persistent_keepalive_interval")) is not None:
        keepalive = _atoi(value)
        if not 0 <= keepalive <= KEEPALIVE_MAX:
            raise ControlCommandError(errno.EINVAL)
        cmd.persistent_keepalive_interval = keepalive
    elif line == "replace_allowed_ips=true":
        cmd.replace_allowed_ips = True
    elif (value := _value(line, "allowed_ip")) is not None:
        try:
            cmd.allowed_ip.append(parse_iprange(value))
        except ValueError:
            raise ControlCommandError(errno.EINVAL) from None
    else:
        raise ControlCommandError(errno.ENOSYS)


def parse_set(lines: Iterable[str]) -> Tuple[InterfaceCommand, list[ClientSetCommand]]:
    """Parse the body of a ``set=1`` command.

    Raises ``ControlCommandError`` with EINVAL for malformed values and
    ENOSYS for unknown keys.
    """
    iface = InterfaceCommand()
    cmds: list[ClientSetCommand] = []
    for line in lines:
        if (value := _value(line, "private_key")) is not None:
            iface.private_key = _key(value)
        elif line.startswith(("listen_port=", "fwmark=", "protocol_version=")):
            continue
        elif line == "replace_peers=true":
            iface.replace_peers = True
        elif (value := _value(line, "public_key")) is not None:
            cmds.append(ClientSetCommand(public_key=_key(value)))
        elif cmds:
            _parse_peer_line(line, cmds[-1])
        else:
            raise ControlCommandError(errno.ENOSYS)
    return iface, cmds