# hpingkit

hpingkit builds raw IPv4 packets layer by layer. You describe a packet in a
short text notation (or add layers from Python), let the library fill in
lengths, protocol numbers, option padding and checksums, and then take the
wire bytes or send them through a raw socket.

It covers IP (with the EOL, NOP, security, stream id, loose and strict source
route, record route and timestamp options), TCP (with the EOL, NOP, MSS,
window scale, SACK-permitted, SACK, echo, echo reply and timestamp options),
UDP, ICMP, IGRP and IGRP routing entries, plus raw data.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Describing a packet

A description is a list of layers joined by `+`. Each layer can take fields
in parentheses, written as `name=value` and separated by commas:

```
ip(daddr=127.0.0.1,ttl=64)+icmp(type=8,code=0,id=1,seq=1)+data(str=hello)
```

Layer keywords (case-insensitive): `ip`, `ip.eol`, `ip.nop`, `ip.sec`,
`ip.sid`, `ip.lsrr`, `ip.ssrr`, `ip.rr`, `ip.ts`, `udp`, `tcp`, `tcp.eol`,
`tcp.nop`, `tcp.mss`, `tcp.wscale`, `tcp.sackperm`, `tcp.sack`, `tcp.echo`,
`tcp.echoreply`, `tcp.ts`, `icmp`, `igrp`, `igrp.entry` and `data`.
Fields given to `tcp.ts` are accepted and ignored.

Numeric values are read with automatic base: a `0x` prefix means hex, a
leading `0` means octal, anything else decimal. Address fields (`saddr`,
`daddr`, `gw`, route data) take a dotted address or a host name.

A number after a closing parenthesis shrinks that layer to the given size,
for example `ip(daddr=127.0.0.1)10+...`. A layer can be shrunk but not grown.

The `data` layer takes `str=` (with `\xx` hex escapes), `hex=`, `file=`
(reads up to 4096 bytes), `uint8=`, `uint16=`, `uint24=` and `uint32=`
(big-endian); each one appends to the layer.

Fields that the library computes — IP version, header length, total length,
protocol and checksum, TCP data offset and checksum, UDP length and checksum,
ICMP and IGRP checksums, IP option pointers — are only computed when you did
not set them yourself.

## Building packets in Python

```python
from hpingkit.packet import Packet
from hpingkit.apd import parse_description

packet = Packet()
parse_description(packet, "ip(daddr=127.0.0.1)+udp(sport=1234,dport=53)+data(str=hi)")
packet.compile()
wire = packet.build()
```

Layers can also be added directly with `Packet.add_ip`, `Packet.add_tcp`,
`Packet.add_udp`, `Packet.add_icmp`, `Packet.add_igrp`,
`Packet.add_igrp_entry`, `Packet.add_ipopt`, `Packet.add_tcpopt` and
`Packet.add_data`; each returns a `Layer` whose `data` bytes you can edit.
`Packet.set_flags` marks fields as user-set, `Packet.remove_layer` drops a
layer and `Packet.set_default` gives new layers of a type an initial content.
The field setters used by the description language are available in
`hpingkit.apdfields` (`set_ip_field`, `set_tcp_field`, `set_udp_field`, ...),
and the header wire formats as dataclasses in `hpingkit.headers` (`IpHeader`,
`TcpHeader`, `UdpHeader`, `IcmpHeader`, `IgrpHeader`, `IgrpEntry`,
`PseudoHeader`) with `pack` and `unpack`.

Errors are raised as `hpingkit.packet.PacketError`.

## Sending

From Python, `hpingkit.packet.open_raw_socket()` opens a raw socket and
`Packet.send(sock)` sends the built packet to the destination address of its
first IP layer (or to an explicit address). `hpingkit.apd.send_description`
does parsing, compiling and sending in one call.

From the command line:

```
hpingkit-apd "ip(daddr=127.0.0.1)+icmp(type=8,id=1,seq=1)"
```

This builds, compiles and sends the described packet and exits with status 0,
or prints `APD error: ...` and exits with status 1. Raw sockets usually need
administrator rights.

## Other utilities

- `hpingkit.checksum.internet_checksum` and `hpingkit.checksum.MultiChecksum`
  compute the Internet checksum over one buffer or over several buffers in
  sequence.
- `hpingkit.hexconv.hex_to_bin` and `hpingkit.hexconv.bin_to_hex` convert
  between hex text and bytes.
- `hpingkit.strutil.is_number` and `hpingkit.strutil.split_fields` help with
  parsing field values.
- `hpingkit.adbuf.AdBuffer` is a growable byte buffer with trimming and
  printf-style appending.
- `hpingkit.antigetopt.OptionParser` is a command-line option parser with
  short, long, bundled and abbreviated options, and optional tester callbacks
  that refuse options (`set_exception`); `format_error` turns its errors into
  the usual GNU-style messages.
- `hpingkit.ipopts.build_ip_options` assembles source route and record route
  options, and `hpingkit.ipopts.RouteOptionFormatter` renders the options of
  a received IP header as text.

## What it does not do

hpingkit only builds and sends packets. It does not receive or capture
replies, does not run a ping-style send loop, does not measure round-trip
times or keep statistics, does not scan ports and does not discover network
interfaces. The only command is `hpingkit-apd`, which sends one packet.