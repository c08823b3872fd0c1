"""A simulated network of hosts around one router, used to check routing end to end."""

from __future__ import annotations

import dataclasses
import ipaddress
import logging
import random
import sys
from typing import Optional, Sequence, Union

from sponge.network_interface import (
    ARPMessage,
    EthernetFrame,
    InternetDatagram,
    ParseError,
)
from sponge.router import AsyncNetworkInterface, Router

logger = logging.getLogger(__name__)

AddressLike = Union[ipaddress.IPv4Address, str, int]

GREEN = "\033[32;1m"
RED = "\033[31;1m"
NORMAL = "\033[m"

_rng = random.Random()


def random_host_ethernet_address() -> bytes:
    """A random private, unicast Ethernet address for a host."""
    address = bytearray(_rng.getrandbits(8) for _ in range(6))
    address[0] |= 0x02
    address[0] &= 0xFE
    return bytes(address)


def random_router_ethernet_address() -> bytes:
    """A random private Ethernet address for a router interface."""
    address = bytearray(_rng.getrandbits(8) for _ in range(6))
    address[0] = 0x02
    address[1] = 0
    address[2] = 0
    return bytes(address)


def _payload_text(payload: bytes) -> str:
    return bytes(payload).decode("latin-1")


def summary(frame: EthernetFrame) -> str:
    """Describe a frame and, where it parses, what it carries."""
    text = frame.header_summary()
    if frame.type == EthernetFrame.TYPE_IPv4:
        try:
            dgram = InternetDatagram.parse(frame.payload)
        except ParseError:
            text += " (bad IPv4)"
        else:
            text += f' {dgram.summary()} payload="{_payload_text(dgram.payload)}"'
    elif frame.type == EthernetFrame.TYPE_ARP:
        try:
            message = ARPMessage.parse(frame.payload)
        except ParseError:
            text += " (bad ARP)"
        else:
            text += f" {message.summary()}"
    return text


class Host:
    """A host with one interface that sends datagrams and checks what it receives."""

    def __init__(self, name: str, my_address: AddressLike, next_hop: AddressLike) -> None:
        self._name = name
        self._address = ipaddress.IPv4Address(my_address)
        self._interface = AsyncNetworkInterface(random_host_ethernet_address(), self._address)
        self._next_hop = ipaddress.IPv4Address(next_hop)
        self._expected: list[InternetDatagram] = []

    def __repr__(self) -> str:
        return f"Host({self._name!r}, {self._address})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def address(self) -> ipaddress.IPv4Address:
        return self._address

    @property
    def interface(self) -> AsyncNetworkInterface:
        return self._interface

    def send_to(self, destination: AddressLike, ttl: int = 64) -> InternetDatagram:
        """Send a datagram with a random payload; return a copy of what was sent."""
        dgram = InternetDatagram(
            src=int(self._address),
            dst=int(ipaddress.IPv4Address(destination)),
            payload=f"random payload: {{{_rng.getrandbits(32)}}}".encode(),
            ttl=ttl,
        )
        self._interface.send_datagram(dgram, self._next_hop)
        logger.info(
            'Host %s trying to send datagram (with next hop = %s): %s payload="%s"',
            self._name,
            self._next_hop,
            dgram.summary(),
            _payload_text(dgram.payload),
        )
        return dataclasses.replace(dgram)

    def expect(self, expected: InternetDatagram) -> None:
        """Record a datagram this host must receive before the next check."""
        self._expected.append(dataclasses.replace(expected))

    def _find_expected(self, dgram: InternetDatagram) -> Optional[int]:
        wire = dgram.serialize()
        return next(
            (pos for pos, item in enumerate(self._expected) if item.serialize() == wire),
            None,
        )

    def check(self) -> None:
        """Consume received datagrams; raise if any was unexpected or one is missing."""
        queue = self._interface.datagrams_out
        while queue:
            received = queue[0]
            position = self._find_expected(received)
            if position is None:
                raise RuntimeError(
                    f"Host {self._name} received unexpected Internet datagram: "
                    f'{received.summary()} payload="{_payload_text(received.payload)}"'
                )
            del self._expected[position]
            queue.popleft()

        if self._expected:
            missing = self._expected[0]
            raise RuntimeError(
                f"Host {self._name} did NOT receive an expected Internet datagram: "
                f'{missing.summary()} payload="{_payload_text(missing.payload)}"'
            )


_Link = tuple[str, AsyncNetworkInterface]


class Network:
    """A fixed topology: one router, several subnets and the hosts on them."""

    def __init__(self) -> None:
        self._router = Router()

        def add(address: str) -> int:
            return self._router.add_interface(
                AsyncNetworkInterface(random_router_ethernet_address(), address)
            )

        self._default_id = add("171.67.76.46")
        self._eth0_id = add("10.0.0.1")
        self._eth1_id = add("172.16.0.1")
        self._eth2_id = add("192.168.0.1")
        self._uun3_id = add("198.178.229.1")
        self._hs4_id = add("143.195.0.2")
        self._mit5_id = add("128.30.76.255")

        self._hosts: dict[str, Host] = {
            name: Host(name, address, next_hop)
            for name, address, next_hop in (
                ("applesauce", "10.0.0.2", "10.0.0.1"),
                ("default_router", "171.67.76.1", "0.0.0.0"),
                ("cherrypie", "192.168.0.2", "192.168.0.1"),
                ("hs_router", "143.195.0.1", "0.0.0.0"),
                ("dm42", "198.178.229.42", "198.178.229.1"),
                ("dm43", "198.178.229.43", "198.178.229.1"),
            )
        }

        router = self._router
        router.add_route("0.0.0.0", 0, self.host("default_router").address, self._default_id)
        router.add_route("10.0.0.0", 8, None, self._eth0_id)
        router.add_route("172.16.0.0", 16, None, self._eth1_id)
        router.add_route("192.168.0.0", 24, None, self._eth2_id)
        router.add_route("198.178.229.0", 24, None, self._uun3_id)
        router.add_route("143.195.0.0", 17, self.host("hs_router").address, self._hs4_id)
        router.add_route("143.195.128.0", 18, self.host("hs_router").address, self._hs4_id)
        router.add_route("143.195.192.0", 19, self.host("hs_router").address, self._hs4_id)
        router.add_route("128.30.76.255", 16, "128.30.0.1", self._mit5_id)

    @property
    def router(self) -> Router:
        return self._router

    def host(self, name: str) -> Host:
        """The host called ``name``."""
        try:
            found = self._hosts[name]
        except KeyError:
            raise KeyError(f"unknown host: {name}") from None
        if found.name != name:
            raise RuntimeError(f"invalid host: {name}")
        return found

    @staticmethod
    def _deliver(
        src_name: str, frames: Sequence[EthernetFrame], dst_name: str, dst: AsyncNetworkInterface
    ) -> None:
        for frame in frames:
            logger.info("Transferring frame from %s to %s: %s", src_name, dst_name, summary(frame))
            dst.recv_frame(frame)

    def _exchange_frames(self, *links: _Link) -> None:
        # Only the frames queued before delivery are exchanged; replies wait for the next round.
        snapshots = [list(interface.frames_out) for _, interface in links]
        for (src_name, _), frames in zip(links, snapshots):
            for dst_name, dst in links:
                if dst_name != src_name:
                    self._deliver(src_name, frames, dst_name, dst)
        for (_, interface), frames in zip(links, snapshots):
            for _ in frames:
                interface.frames_out.popleft()

    def simulate_physical_connections(self) -> None:
        """Carry queued frames across every link of the topology once."""
        router = self._router

        def link(name: str) -> _Link:
            return name, self.host(name).interface

        self._exchange_frames(
            ("router.default", router.interface(self._default_id)), link("default_router")
        )
        self._exchange_frames(("router.eth0", router.interface(self._eth0_id)), link("applesauce"))
        self._exchange_frames(("router.eth2", router.interface(self._eth2_id)), link("cherrypie"))
        self._exchange_frames(("router.hs4", router.interface(self._hs4_id)), link("hs_router"))
        self._exchange_frames(
            ("router.uun3", router.interface(self._uun3_id)), link("dm42"), link("dm43")
        )

    def simulate(self) -> None:
        """Run the network to quiescence, then check every host's expectations."""
        for _ in range(256):
            self._router.route()
            self.simulate_physical_connections()
        for host in self._hosts.values():
            host.check()


def _send_and_expect(
    network: Network, sender: str, destination: AddressLike, receiver: str
) -> None:
    sent = network.host(sender).send_to(destination)
    sent.ttl -= 1
    network.host(receiver).expect(sent)
    network.simulate()


def network_simulator() -> None:
    """Run the routing scenarios; raise on the first misrouted datagram."""
    print(f"{GREEN}Constructing network.{NORMAL}", file=sys.stderr)
    network = Network()

    def heading(text: str) -> None:
        print(f"{GREEN}\n\n{text}{NORMAL}\n")

    heading("Testing traffic between two ordinary hosts (applesauce to cherrypie)...")
    _send_and_expect(network, "applesauce", network.host("cherrypie").address, "cherrypie")

    heading("Testing traffic between two ordinary hosts (cherrypie to applesauce)...")
    _send_and_expect(network, "cherrypie", network.host("applesauce").address, "applesauce")

    heading("Success! Testing applesauce sending to the Internet.")
    _send_and_expect(network, "applesauce", "1.2.3.4", "default_router")

    heading("Success! Testing sending to the HS network and Internet.")
    _send_and_expect(network, "applesauce", "143.195.131.17", "hs_router")
    _send_and_expect(network, "cherrypie", "143.195.193.52", "hs_router")
    _send_and_expect(network, "cherrypie", "143.195.223.255", "hs_router")
    _send_and_expect(network, "cherrypie", "143.195.224.0", "default_router")

    heading("Success! Testing two hosts on the same network (dm42 to dm43)...")
    _send_and_expect(network, "dm42", network.host("dm43").address, "dm43")

    heading("Success! Testing TTL expiration...")
    network.host("applesauce").send_to("1.2.3.4", 1)
    network.simulate()
    network.host("applesauce").send_to("1.2.3.4", 0)
    network.simulate()

    print(f"\n\n{GREEN}Congratulations! All datagrams were routed successfully.{NORMAL}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the simulator; return a process exit status."""
    try:
        network_simulator()
    except Exception as error:  # noqa: BLE001 - report any failure and exit non-zero
        print("\n\n", file=sys.stderr)
        print(f"{RED}Error: {error}{NORMAL}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())