import errno
import os
import socket
import tempfile
import threading

import pytest

from wireglide.control import ControlServer, ControlSession, UnixServer
from wireglide.keys import Key256
from wireglide.registry import PeerRegistry
from wireglide.uapi import ControlClientError

PUBKEY = Key256(bytes(range(32)))
OTHER_PUBKEY = Key256(bytes(range(32, 64)))


def _set_peer(key, endpoint, extra=()):
    lines = ["set=1", f"public_key={key.to_base64()}", f"endpoint={endpoint}", *extra]
    return ("\n".join(lines) + "\n\n").encode()


def _reply(err):
    return f"errno={err}\n\n".encode()


@pytest.fixture
def session():
    return ControlSession(PeerRegistry())


@pytest.fixture
def sockdir():
    with tempfile.TemporaryDirectory() as directory:
        yield directory


def test_get_reply(session):
    assert session.receive(b"get=1\n\n") == 1
    assert session.take_output() == b"errno=0\n\n"
    assert session.take_output() == b""


def test_command_split_across_reads(session):
    assert session.receive(b"get") == 0
    assert session.receive(b"=1\n") == 0
    assert session.take_output() == b""
    assert session.receive(b"\n") == 1
    assert session.take_output() == _reply(0)


def test_two_commands_in_one_chunk(session):
    assert session.receive(b"get=1\n\nget=1\n\n") == 2
    assert session.take_output() == _reply(0) * 2


def test_set_adds_peer(session):
    session.receive(_set_peer(PUBKEY, "192.0.2.1:51820"))
    assert session.take_output() == _reply(0)
    client = session.registry.find_by_key(PUBKEY)
    assert str(client.endpoint) == "192.0.2.1:51820"


def test_set_remove_peer(session):
    session.receive(_set_peer(PUBKEY, "192.0.2.1:51820"))
    session.receive(f"set=1\npublic_key={PUBKEY.to_base64()}\nremove=true\n\n".encode())
    assert session.take_output() == _reply(0) * 2
    assert len(session.registry) == 0


def test_set_invalid_key(session):
    session.receive(b"set=1\npublic_key=bogus\n\n")
    assert session.take_output() == _reply(errno.EINVAL)


def test_peer_line_without_public_key(session):
    session.receive(b"set=1\nendpoint=192.0.2.1:51820\n\n")
    assert session.take_output() == _reply(errno.ENOSYS)


def test_update_only_missing_peer(session):
    session.receive(_set_peer(PUBKEY, "192.0.2.1:51820", ["update_only=true"]))
    assert session.take_output() == _reply(errno.ENOENT)
    assert session.registry.find_by_key(PUBKEY) is None


def test_duplicate_endpoint(session):
    session.receive(_set_peer(PUBKEY, "192.0.2.1:51820"))
    session.receive(_set_peer(OTHER_PUBKEY, "192.0.2.1:51820"))
    assert session.take_output() == _reply(0) + _reply(errno.EEXIST)


def test_unknown_operation_reports_eperm(session):
    session.receive(b"frobnicate=1\n\n")
    assert session.take_output() == _reply(errno.EPERM)


def test_handle_command_returns_reply(session):
    reply = session.handle_command(["get=1"])
    assert reply == "errno=0\n\n"
    assert session.take_output() == reply.encode()


def test_nul_byte_is_client_error(session):
    with pytest.raises(ControlClientError):
        session.receive(b"get\0=1\n\n")


def test_unix_server_path_too_long():
    with pytest.raises(ValueError, match="too long"):
        UnixServer("/" + "a" * 200)


def test_unix_server_path_with_null():
    with pytest.raises(ValueError, match="null"):
        UnixServer("a\0b")


def test_unix_server_refuses_regular_file(sockdir):
    path = os.path.join(sockdir, "plain")
    with open(path, "w") as fh:
        fh.write("data")
    with pytest.raises(RuntimeError, match="non-socket"):
        UnixServer(path)
    with open(path) as fh:
        assert fh.read() == "data"


def test_unix_server_replaces_stale_socket(sockdir):
    path = os.path.join(sockdir, "ctl.sock")
    first = UnixServer(path)
    first.close()
    assert first.fileno() == -1
    with UnixServer(path) as second:
        assert second.fileno() >= 0
        assert second.path == path


def _read_reply(sock):
    data = b""
    while not data.endswith(b"\n\n"):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def _start(server):
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    return thread


def test_server_get_and_set(sockdir):
    path = os.path.join(sockdir, "ctl.sock")
    registry = PeerRegistry()
    with UnixServer(path) as unx:
        server = ControlServer(unx, registry)
        thread = _start(server)
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
                client.settimeout(5)
                client.connect(path)
                client.sendall(b"get=1\n\n")
                assert _read_reply(client) == _reply(0)
                client.sendall(_set_peer(PUBKEY, "192.0.2.1:51820"))
                assert _read_reply(client) == _reply(0)
        finally:
            server.stop()
            thread.join(5)
    assert not thread.is_alive()
    assert str(registry.find_by_key(PUBKEY).endpoint) == "192.0.2.1:51820"


def test_server_replies_after_half_close(sockdir):
    path = os.path.join(sockdir, "ctl.sock")
    with UnixServer(path) as unx:
        server = ControlServer(unx)
        thread = _start(server)
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
                client.settimeout(5)
                client.connect(path)
                client.sendall(b"get=1\n\n")
                client.shutdown(socket.SHUT_WR)
                assert _read_reply(client) == _reply(0)
                assert client.recv(16) == b""
        finally:
            server.stop()
            thread.join(5)
    assert not thread.is_alive()


def test_server_drops_client_on_framing_error(sockdir):
    path = os.path.join(sockdir, "ctl.sock")
    with UnixServer(path) as unx:
        server = ControlServer(unx)
        thread = _start(server)
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
                client.settimeout(5)
                client.connect(path)
                client.sendall(b"get\0=1\n\n")
                assert client.recv(16) == b""
        finally:
            server.stop()
            thread.join(5)
    assert not thread.is_alive()


def test_stop_before_run(sockdir):
    path = os.path.join(sockdir, "ctl.sock")
    with UnixServer(path) as unx:
        server = ControlServer(unx)
        server.stop()
        thread = _start(server)
        thread.join(5)
    assert not thread.is_alive()