"""An IPv4 router that forwards datagrams by longest-prefix match."""

from __future__ import annotations

import ipaddress
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, Union

from sponge.network_interface import EthernetFrame, InternetDatagram, NetworkInterface

logger = logging.getLogger(__name__)

AddressLike = Union[ipaddress.IPv4Address, str, int]


def _numeric(value: AddressLike) -> int:
    return int(ipaddress.IPv4Address(value))


class AsyncNetworkInterface(NetworkInterface):
    """A network interface that queues received datagrams instead of returning them.

    Datagrams carried by incoming frames are appended to ``datagrams_out``
    for later retrieval by the owner. Everything else behaves exactly like
    :class:`NetworkInterface`.
    """

    def __init__(self, ethernet_address: bytes, ip_address: AddressLike) -> None:
        super().__init__(ethernet_address, ip_address)
        self.datagrams_out: deque[InternetDatagram] = deque()

    def recv_frame(self, frame: EthernetFrame) -> None:  # type: ignore[override]
        """Handle an incoming frame, queuing any datagram it carries."""
        dgram = super().recv_frame(frame)
        if dgram is not None:
            self.datagrams_out.append(dgram)


@dataclass(frozen=True)
class RouteEntry:
    """One forwarding rule: a prefix, its length, an optional next hop and an interface."""

    route_prefix: int
    prefix_length: int
    next_hop: Optional[ipaddress.IPv4Address]
    interface_num: int

    def matches(self, address: AddressLike) -> bool:
        """True if the top ``prefix_length`` bits of ``address`` equal the prefix's."""
        if self.prefix_length == 0:
            return True
        return ((self.route_prefix ^ _numeric(address)) >> (32 - self.prefix_length)) == 0


class Router:
    """A router with several interfaces that routes by longest matching prefix."""

    def __init__(self) -> None:
        self._interfaces: list[AsyncNetworkInterface] = []
        self._routes: list[RouteEntry] = []

    def __repr__(self) -> str:
        return f"Router(interfaces={len(self._interfaces)}, routes={len(self._routes)})"

    @property
    def routes(self) -> tuple[RouteEntry, ...]:
        return tuple(self._routes)

    def add_interface(self, interface: AsyncNetworkInterface) -> int:
        """Attach ``interface``; return its index."""
        self._interfaces.append(interface)
        return len(self._interfaces) - 1

    def interface(self, index: int) -> AsyncNetworkInterface:
        """The interface at ``index``."""
        if not 0 <= index < len(self._interfaces):
            raise IndexError(f"no interface with index {index}")
        return self._interfaces[index]

    def add_route(
        self,
        route_prefix: AddressLike,
        prefix_length: int,
        next_hop: Optional[AddressLike],
        interface_num: int,
    ) -> None:
        """Add a forwarding rule.

        ``next_hop`` is ``None`` when the network is directly attached, in which
        case datagrams go straight to their destination address.
        """
        if not 0 <= prefix_length <= 32:
            raise ValueError(f"prefix length must be between 0 and 32, not {prefix_length}")
        prefix = _numeric(route_prefix)
        hop = None if next_hop is None else ipaddress.IPv4Address(next_hop)
        logger.debug(
            "adding route %s/%d => %s on interface %d",
            ipaddress.IPv4Address(prefix),
            prefix_length,
            hop if hop is not None else "(direct)",
            interface_num,
        )
        self._routes.append(RouteEntry(prefix, prefix_length, hop, interface_num))

    def _best_route(self, destination: int) -> Optional[RouteEntry]:
        best: Optional[RouteEntry] = None
        for entry in self._routes:
            if entry.matches(destination) and (
                best is None or entry.prefix_length > best.prefix_length
            ):
                best = entry
        return best

    def _route_one_datagram(self, dgram: InternetDatagram) -> None:
        best = self._best_route(dgram.dst)
        if best is None or dgram.ttl <= 1:
            return
        dgram.ttl -= 1
        outgoing = self.interface(best.interface_num)
        hop = best.next_hop if best.next_hop is not None else ipaddress.IPv4Address(dgram.dst)
        outgoing.send_datagram(dgram, hop)

    def route(self) -> None:
        """Route every datagram waiting on any interface to its outgoing interface."""
        for interface in self._interfaces:
            queue = interface.datagrams_out
            while queue:
                self._route_one_datagram(queue.popleft())