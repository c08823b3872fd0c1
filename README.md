# sponge

`sponge` is a small networking toolkit written in plain Python. It uses
only the standard library.

## Contents

- `sponge.byte_stream.ByteStream`: a flow-controlled, in-memory byte stream
  with a fixed capacity. A writer adds bytes and ends the input. A reader
  peeks, pops or reads bytes. The stream counts the bytes written and read.
  It also carries an error flag (`set_error()` / `error()`).
- `sponge.stream_reassembler.StreamReassembler`: takes substrings that
  arrive out of order or overlap and writes them in order into one
  `ByteStream`, within a memory limit. If a substring disagrees with bytes
  already received, it raises `InconsistentSubstringError`.
- `sponge.retrans_timer.Timer`: a retransmission timer with exponential
  back-off. Its states are the members of `TimerState`.
- `sponge.network_interface`: the `EthernetFrame`, `ARPMessage` and
  `InternetDatagram` wire formats (each has `serialize()` and a `parse()`
  class method that raises `ParseError`), plus `NetworkInterface`.
  `NetworkInterface` turns IPv4 datagrams into Ethernet frames. It resolves
  next-hop addresses with ARP, keeps the mappings it learns for 30 seconds,
  and repeats an unanswered ARP request every 5 seconds.
- `sponge.router`: `AsyncNetworkInterface` queues received datagrams on
  `datagrams_out` instead of returning them. `RouteEntry` is one forwarding
  rule. `Router` routes by longest prefix match.
- `sponge.network_simulator`: a fixed test network of hosts around one
  router (`Host`, `Network`, `network_simulator()`).
- `sponge.stream_copy.bidirectional_stream_copy(sock, stdin, stdout)`:
  copies the input to a connected socket and the socket to the output until
  both directions end.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Library use

### Byte stream

```python
from sponge.byte_stream import ByteStream

stream = ByteStream(15)
stream.write(b"cat")
stream.peek_output(3)        # b"cat"
stream.pop_output(1)
stream.bytes_read()          # 1
stream.end_input()
stream.read(2)               # b"at"
stream.eof()                 # True
```

`write` accepts as many bytes as fit in the remaining capacity and returns
the number it accepted.

### Stream reassembly

```python
from sponge.stream_reassembler import StreamReassembler

reassembler = StreamReassembler(64)
reassembler.push_substring(b"world", 5, True)
reassembler.unassembled_bytes()   # 5
reassembler.push_substring(b"hello", 0, False)
reassembler.stream_out().read(10) # b"helloworld"
```

Bytes that fall beyond the capacity window are discarded without an error.

### Retransmission timer

A `Timer(timeout)` starts stopped. `start_timer()` makes it run, and
`tick(ms)` adds elapsed time while it runs. `timer_expired()` reports whether
the current timeout (`rto`) has been reached. `handle_expired()` doubles the
timeout and restarts the count. `reset_timer()` restores the initial
timeout. `stop_timer()` stops the timer and resets it.

### Interfaces and routing

Send a datagram with `NetworkInterface.send_datagram(dgram, next_hop)`.
Pass incoming frames to `recv_frame(frame)` and elapsed time to `tick(ms)`.
Frames ready to transmit collect in the `frames_out` deque.

A `Router` holds `AsyncNetworkInterface` objects, each added with
`add_interface(interface)`, which returns its index. `interface(index)`
returns the interface at that index. Rules are added with
`add_route(route_prefix, prefix_length, next_hop, interface_num)`. Use
`next_hop=None` for a directly attached network. Each call to `route()`
forwards every queued datagram on the longest matching route and lowers its
TTL by one. A datagram is dropped when its TTL is 1 or less, or when no
route matches.

## Commands

- `sponge-network-simulator` builds the simulated network and checks that
  datagrams reach the expected hosts. The checks cover the default route,
  overlapping prefixes and TTL expiry. It exits with status 1 on the first
  failure.
- `sponge-webget HOST PATH` sends an HTTP/1.1 GET for `PATH` to `HOST` on
  port 80 and writes the whole response to standard output.
- `sponge-tcp-native HOST PORT` connects to a TCP server, then copies
  standard input to the socket and the socket to standard output.
  `sponge-tcp-native -l HOST PORT` listens on `HOST:PORT` instead and
  accepts one connection.
- `sponge-bouncer` binds UDP port pairs (p, p+1) for p = 1024, 1026, …, 64000.
  On each port it learns the address of the last sender. It forwards
  non-empty datagrams to the peer last heard on the other port of the pair.

## What it does not do

The package has no TCP implementation of its own. It has no TCP sender,
receiver or connection state machine. `sponge-tcp-native` and
`sponge-webget` use the operating system's TCP sockets. Nothing reads or
writes TUN/TAP devices or captures packets. Interfaces and the router
exchange frames only in memory, as `network_simulator` does.