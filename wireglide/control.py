"""The control socket: sessions speaking the configuration protocol and the server loop."""

from __future__ import annotations

import errno
import os
import selectors
import socket
import stat
import threading
from typing import Iterable, Optional, Union

from .registry import PeerRegistry
from .uapi import ControlClientError, ControlCommandError, LineAccumulator, parse_set

SUN_PATH_MAX = 107
LISTEN_BACKLOG = 100
RECV_CHUNK = 4096

_WAKE = object()


class ControlSession:
    """One client of the control socket: turns received bytes into replies."""

    def __init__(self, registry: PeerRegistry) -> None:
        self.registry = registry
        self._lines = LineAccumulator()
        self._output = bytearray()

    def receive(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        """Feed received data, run every completed command, return how many ran.

        Raises ``ControlClientError`` when the client breaks the framing rules.
        """
        commands = self._lines.feed(data)
        for lines in commands:
            self.handle_command(lines)
        return len(commands)

    def take_output(self) -> bytes:
        """Return and clear the replies waiting to be sent."""
        out = bytes(self._output)
        self._output.clear()
        return out

    def handle_command(self, lines: Iterable[str]) -> str:
        """Run one command and queue its reply, which is also returned."""
        lines = list(lines)
        op, body = (lines[0], lines[1:]) if lines else ("", [])
        try:
            if op == "get=1":
                err = 0
            elif op == "set=1":
                iface, cmds = parse_set(body)
                err = self.registry.apply_set(iface, cmds)
            else:
                raise ControlClientError(f"unknown operation {op!r}")
        except ControlCommandError as exc:
            err = exc.err
        except Exception:
            err = errno.EPERM
        reply = f"errno={err}\n\n"
        self._output += reply.encode("ascii")
        return reply


class UnixServer:
    """A bound stream socket at a filesystem path."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        path = os.fspath(path)
        if len(os.fsencode(path)) > SUN_PATH_MAX:
            raise ValueError("socket path too long")
        if "\0" in path:
            raise ValueError("socket path contains null")
        try:
            st = os.stat(path)
        except FileNotFoundError:
            st = None
        if st is not None:
            if not stat.S_ISSOCK(st.st_mode):
                raise RuntimeError(f"refusing to unlink non-socket file {path}")
            os.unlink(path)
        self.path = path
        self.socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            self.socket.bind(path)
        except OSError:
            self.socket.close()
            raise

    def fileno(self) -> int:
        return self.socket.fileno()

    def close(self) -> None:
        self.socket.close()

    def __enter__(self) -> "UnixServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class _Connection:
    def __init__(self, sock: socket.socket, registry: PeerRegistry) -> None:
        self.sock = sock
        self.session = ControlSession(registry)
        self.pending = bytearray()
        self.reading = True

    def events(self) -> int:
        mask = selectors.EVENT_READ if self.reading else 0
        if self.pending:
            mask |= selectors.EVENT_WRITE
        return mask


class ControlServer:
    """Serves the configuration protocol on a ``UnixServer`` until stopped."""

    def __init__(
        self,
        unix_server: UnixServer,
        registry: Optional[PeerRegistry] = None,
        backlog: int = LISTEN_BACKLOG,
    ) -> None:
        self.unix_server = unix_server
        self.registry = registry if registry is not None else PeerRegistry()
        self._stopping = threading.Event()
        self._wake_w: Optional[socket.socket] = None
        self._connections: dict[socket.socket, _Connection] = {}
        unix_server.socket.listen(backlog)

    def stop(self) -> None:
        """Ask a running (or future) ``run`` to return."""
        self._stopping.set()
        wake = self._wake_w
        if wake is not None:
            try:
                wake.send(b"\0")
            except OSError:
                pass

    def run(self) -> None:
        """Accept clients and answer their commands until ``stop`` is called."""
        listener = self.unix_server.socket
        listener.setblocking(False)
        wake_r, wake_w = socket.socketpair()
        wake_r.setblocking(False)
        self._wake_w = wake_w
        sel = selectors.DefaultSelector()
        try:
            sel.register(listener, selectors.EVENT_READ, None)
            sel.register(wake_r, selectors.EVENT_READ, _WAKE)
            while not self._stopping.is_set():
                for key, mask in sel.select():
                    if key.data is _WAKE:
                        return
                    if key.data is None:
                        if mask & selectors.EVENT_READ:
                            self._accept(sel, listener)
                    else:
                        self._service(sel, key.data, mask)
        finally:
            self._wake_w = None
            for conn in list(self._connections.values()):
                self._drop(sel, conn)
            sel.close()
            wake_r.close()
            wake_w.close()

    def _accept(self, sel: selectors.BaseSelector, listener: socket.socket) -> None:
        try:
            sock, _ = listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        sock.setblocking(False)
        conn = _Connection(sock, self.registry)
        self._connections[sock] = conn
        sel.register(sock, selectors.EVENT_READ, conn)

    def _drop(self, sel: selectors.BaseSelector, conn: _Connection) -> None:
        self._connections.pop(conn.sock, None)
        try:
            sel.unregister(conn.sock)
        except (KeyError, ValueError):
            pass
        conn.sock.close()

    def _service(self, sel: selectors.BaseSelector, conn: _Connection, mask: int) -> None:
        before = conn.events()
        if mask & selectors.EVENT_READ:
            try:
                data = conn.sock.recv(RECV_CHUNK)
            except (BlockingIOError, InterruptedError):
                data = None
            except OSError:
                self._drop(sel, conn)
                return
            if data == b"":
                conn.reading = False
            elif data:
                try:
                    conn.session.receive(data)
                except ControlClientError:
                    self._drop(sel, conn)
                    return
                conn.pending += conn.session.take_output()
        while conn.pending:
            try:
                sent = conn.sock.send(conn.pending)
            except (BlockingIOError, InterruptedError):
                break
            except OSError:
                self._drop(sel, conn)
                return
            if sent == 0:
                self._drop(sel, conn)
                return
            del conn.pending[:sent]
        after = conn.events()
        if not after:
            self._drop(sel, conn)
        elif after != before:
            sel.modify(conn.sock, after, conn)