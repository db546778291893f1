"""Tunnel control-plane utilities: checksums, address parsing, peer tables, a control socket and a UDP test tool."""

__version__ = "0.1.0"