# wireglide

Pieces of a userspace tunnel's control plane, usable on their own.

## Modules

- **`wireglide.base64`**: padded base64 `encode(data)` and `decode(text)`,
  with the size helpers `encoded_size(n)` and `decoded_size(n)`. `decode`
  stops at the first `=` or at any character outside the alphabet and returns
  the decoded bytes together with the number of characters it read.
- **`wireglide.checksum`**: the Internet ones' complement checksum.
  `checksum_nofold` keeps a 64-bit running sum, `fold_complement` finishes it,
  `checksum` does both. `pseudo_header_checksum_nofold` and
  `pseudo_header_checksum` cover the TCP/UDP pseudo-header, and
  `calc_l4_checksum(ippkt, isv6, istcp, csum_start)` computes the TCP or UDP
  checksum of a whole IPv4 or IPv6 packet. Results are in network byte order,
  so `struct.pack("!H", value)` gives the bytes on the wire.
- **`wireglide.keys`**: `Key256`, an ordered, hashable 32-byte key with
  `to_base64()`, and `parse_keybytes(text)`, which accepts 64 hex digits or
  44 characters of padded base64 and raises `ValueError` otherwise.
- **`wireglide.packets`**: `iter_segments(data, segment_size)` yields
  memoryviews of consecutive segments of a coalesced buffer; the last one may
  be shorter.
- **`wireglide.netutil`**: `parse_inaddr`, `parse_ipport`
  (`192.0.2.1:51820` or `[2001:db8::1]:51820`, port 1 to 65535),
  `parse_iprange` (`address/prefix`), `format_address` (IPv6 as eight
  four-digit hex groups) and the frozen, ordered `Endpoint` type. The parsers
  raise `ValueError` on bad input.
- **`wireglide.prefix`**: `NetPrefix4` and `NetPrefix6` map an address range
  onto an inclusive integer interval (`get_range`) and an address onto its key
  (`reduce`); `load_ip6` turns an IPv6 address into a 128-bit integer.
- **`wireglide.uapi`**: the line-based configuration protocol.
  `LineAccumulator.feed` splits incoming bytes into commands; `parse_set`
  turns the lines of a `set=1` body into an `InterfaceCommand` and a list of
  `ClientSetCommand`s. Framing errors raise `ControlClientError`; bad values
  raise `ControlCommandError` carrying an errno (`EINVAL`, or `ENOSYS` for an
  unknown key).
- **`wireglide.registry`**: `PeerRegistry` holds `Client` peers indexed by
  public key, by endpoint and by allowed IP (`find_by_key`,
  `find_by_endpoint`, `lookup_ip`). `add_client`, `remove_client`, `flush`,
  `set_private_key` and `apply_set` change it; `apply_set` runs peer commands
  in order, stops at the first failure and returns its errno (0 on success).
  The interface settings live in the frozen `Config`.
- **`wireglide.control`**: `ControlSession` answers `get=1` and `set=1`
  requests against a `PeerRegistry`; `UnixServer` binds a stream socket at a
  path (replacing a stale socket, refusing to remove any other file);
  `ControlServer` serves sessions on it with `run()` until `stop()` is called.
- **`wireglide.nettool`**: the UDP traffic tool described below, usable from
  Python through `parse_args`, `send_packets`, `receive_packets` and `run`.

## Installing

```
pip install .
```

Python 3.10 or later; there are no third-party dependencies.

## The control protocol

A client writes a command as lines ending in `\n`, closed by an empty line:

```
set=1
public_key=<base64 or hex key>
endpoint=192.0.2.2:51820
allowed_ip=10.77.44.2/32

```

Each request is answered with `errno=<n>` and an empty line, `errno=0`
meaning success. `get=1` answers `errno=0` and reports no configuration. An
unknown operation is answered with `errno=1` (`EPERM`).

Interface keys are `private_key`, `replace_peers=true`, and the ignored
`listen_port`, `fwmark` and `protocol_version`. After a `public_key` line a
peer takes `remove=true`, `update_only=true`, `preshared_key`, `endpoint`,
`persistent_keepalive_interval` (0 to 65535), `replace_allowed_ips=true` and
`allowed_ip`. A new peer needs an endpoint; two peers may not share an
endpoint or overlapping allowed IPs (`EEXIST`).

A line may hold at most 256 characters and a command fewer than 1024 lines;
a longer line, a longer command or a NUL byte closes the connection.

A server can be started from Python:

```python
from wireglide.control import ControlServer, UnixServer

with UnixServer("/tmp/wireglide.sock") as unix_server:
    ControlServer(unix_server).run()
```

## Measuring UDP throughput

`wireglide-nettool` (or `python -m wireglide.nettool`) sends or receives UDP
datagrams and reports the totals.

Receive on UDP port 61666: the tool waits for the first packet, then counts
until no packet has arrived for the receive timeout:

```
wireglide-nettool --recv-timeout 2000
```

Send 100000 packets of 1400 bytes in batches of 64:

```
wireglide-nettool -a 192.0.2.1:61666 -n 100000 -s 1400 --batch 64
```

Packets go out in whole batches, so the number sent is `count` rounded up to
a multiple of the batch size.

| option | meaning | default |
| --- | --- | --- |
| `-a`, `--address` | target `ip:port` or `[ip6]:port`; without it the tool receives | none |
| `-n`, `--count` | number of packets to send | 1 |
| `-r`, `--rate` | socket pacing rate (`SO_MAX_PACING_RATE`), 0 for none | 0 |
| `--batch` | packets per send batch | 32 |
| `--batchsleep` | milliseconds to sleep after each batch | 0 |
| `-s`, `--pktsize` | size of each sent packet | 64 |
| `--recv-timeout` | receive timeout in milliseconds, 0 for none | 2000 |

The tool prints a line such as `sent 100000 packets 140000000 bytes`. Bad
arguments print the error and the usage text and exit with status 1.

## What the package does not do

It does not carry tunnel traffic: there is no tunnel device handling, no key
exchange or handshake, no encryption and no packet forwarding. The peer
tables are kept in memory only, and there is no command that starts the
control server; it is run from Python as shown above.

## Tests

```
pip install .[test]
pytest
```