"""UDP traffic generator and counter."""

from __future__ import annotations

import argparse
import select
import socket
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from .netutil import Endpoint, parse_ipport

DEFAULT_LISTEN_PORT = 61666
RECV_BUFFER_SIZE = 4096
_SO_MAX_PACING_RATE = getattr(socket, "SO_MAX_PACING_RATE", 47)


@dataclass
class NettoolArgs:
    """Options of a nettool run; without an address it receives."""

    address: Optional[Endpoint] = None
    count: int = 1
    rate: int = 0
    batch: int = 32
    batchsleep: int = 0
    pktsize: int = 64
    recv_timeout: int = 2000
    listen_port: int = DEFAULT_LISTEN_PORT

    def __post_init__(self) -> None:
        if self.batch <= 0:
            raise ValueError("invalid batch size")
        if self.count < 0:
            raise ValueError("invalid packet count")
        if self.pktsize < 0:
            raise ValueError("invalid packet size")
        if self.recv_timeout < 0:
            raise ValueError("invalid receive timeout")


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise ValueError(message)


def _make_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="nettool")
    parser.add_argument("-a", "--address", help="ip:port or [ip6]:port")
    parser.add_argument("-n", "--count", type=int, default=1, help="packet count")
    parser.add_argument("-r", "--rate", type=int, default=0, help="SO_MAX_PACING_RATE")
    parser.add_argument("--batch", type=int, default=32, help="send batch size")
    parser.add_argument("--batchsleep", type=int, default=0, help="sleep ms per batch")
    parser.add_argument("-s", "--pktsize", type=int, default=64, help="send packet size")
    parser.add_argument(
        "--recv-timeout", type=int, default=2000, help="receive timeout in ms"
    )
    return parser


def parse_args(argv: Sequence[str]) -> NettoolArgs:
    """Parse command-line arguments; raises ``ValueError`` on bad input."""
    ns = _make_parser().parse_args(list(argv))
    address = None
    if ns.address is not None:
        try:
            address = parse_ipport(ns.address)
        except ValueError:
            raise ValueError("invalid target address") from None
    return NettoolArgs(
        address=address,
        count=ns.count,
        rate=ns.rate,
        batch=ns.batch,
        batchsleep=ns.batchsleep,
        pktsize=ns.pktsize,
        recv_timeout=ns.recv_timeout,
    )


def send_packets(args: NettoolArgs) -> tuple[int, int]:
    """Send whole batches until at least ``count`` packets went out.

    Returns the number of packets and of bytes sent.
    """
    if args.address is None:
        raise ValueError("no target address")
    family = socket.AF_INET6 if args.address.is_v6 else socket.AF_INET
    target = (str(args.address.address), args.address.port)
    payload = bytes(args.pktsize)
    packets = total = 0
    with socket.socket(family, socket.SOCK_DGRAM) as sock:
        if args.rate > 0:
            sock.setsockopt(socket.SOL_SOCKET, _SO_MAX_PACING_RATE, args.rate)
        while packets < args.count:
            for _ in range(args.batch):
                total += sock.sendto(payload, target)
                packets += 1
            if args.batchsleep > 0:
                time.sleep(args.batchsleep / 1000)
    return packets, total


def receive_packets(args: NettoolArgs) -> tuple[int, int]:
    """Wait for traffic, then count it until ``recv_timeout`` ms pass in silence.

    Returns the number of packets and of bytes received.
    """
    packets = total = 0
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        if hasattr(socket, "SO_REUSEPORT"):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        sock.bind(("0.0.0.0", args.listen_port))
        select.select([sock], [], [])
        sock.settimeout(args.recv_timeout / 1000 if args.recv_timeout > 0 else None)
        while True:
            try:
                data = sock.recv(RECV_BUFFER_SIZE)
            except (socket.timeout, BlockingIOError, InterruptedError):
                break
            packets += 1
            total += len(data)
    return packets, total


def run(args: NettoolArgs) -> tuple[int, int]:
    """Send or receive as the arguments say, print a summary and return the counts."""
    if args.address is not None:
        packets, total = send_packets(args)
        verb = "sent"
    else:
        packets, total = receive_packets(args)
        verb = "received"
    print(f"{verb} {packets} packets {total} bytes")
    return packets, total


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    try:
        args = parse_args(argv)
    except ValueError as exc:
        print(exc)
        print(_make_parser().format_help())
        return 1
    run(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())