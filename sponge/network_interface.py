"""Link-layer network interface: IPv4 datagrams over Ethernet, resolved with ARP."""

from __future__ import annotations

import ipaddress
import logging
import struct
from collections import deque
from dataclasses import dataclass, field
from typing import ClassVar, Union

logger = logging.getLogger(__name__)

ETHERNET_ADDRESS_LENGTH = 6
ETHERNET_BROADCAST = b"\xff" * ETHERNET_ADDRESS_LENGTH

ARP_ENTRY_TTL_MS = 30_000
ARP_REQUEST_RETRY_MS = 5_000

AddressLike = Union[ipaddress.IPv4Address, str, int]


class ParseError(ValueError):
    """Raised when bytes cannot be parsed as the requested structure."""


def ethernet_to_string(address: bytes) -> str:
    """Format an Ethernet address as colon-separated lower-case hex."""
    return ":".join(f"{byte:02x}" for byte in address)


def _to_ipv4(value: AddressLike) -> ipaddress.IPv4Address:
    if isinstance(value, ipaddress.IPv4Address):
        return value
    return ipaddress.IPv4Address(value)


def _check_ethernet_address(address: bytes) -> bytes:
    address = bytes(address)
    if len(address) != ETHERNET_ADDRESS_LENGTH:
        raise ValueError(f"Ethernet address must be {ETHERNET_ADDRESS_LENGTH} bytes")
    return address


def _internet_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total > 0xFFFF:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass
class EthernetFrame:
    """An Ethernet frame: destination, source, EtherType and payload."""

    TYPE_IPv4: ClassVar[int] = 0x0800
    TYPE_ARP: ClassVar[int] = 0x0806
    HEADER_LENGTH: ClassVar[int] = 14

    dst: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    src: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    type: int = 0
    payload: bytes = b""

    def serialize(self) -> bytes:
        dst = _check_ethernet_address(self.dst)
        src = _check_ethernet_address(self.src)
        return dst + src + struct.pack("!H", self.type) + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> EthernetFrame:
        data = bytes(data)
        if len(data) < cls.HEADER_LENGTH:
            raise ParseError("Ethernet frame shorter than its header")
        (ethertype,) = struct.unpack_from("!H", data, 12)
        return cls(dst=data[0:6], src=data[6:12], type=ethertype, payload=data[14:])

    def header_summary(self) -> str:
        names = {self.TYPE_IPv4: "IPv4", self.TYPE_ARP: "ARP"}
        kind = names.get(self.type, f"[unknown type {self.type:x}!]")
        return f"dst={ethernet_to_string(self.dst)}, src={ethernet_to_string(self.src)}, type={kind}"


@dataclass
class ARPMessage:
    """An ARP message mapping IPv4 addresses to Ethernet addresses."""

    OPCODE_REQUEST: ClassVar[int] = 1
    OPCODE_REPLY: ClassVar[int] = 2
    TYPE_ETHERNET: ClassVar[int] = 1
    LENGTH: ClassVar[int] = 28
    _FORMAT: ClassVar[str] = "!HHBBH6sI6sI"

    opcode: int = 0
    sender_ethernet_address: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    sender_ip_address: int = 0
    target_ethernet_address: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    target_ip_address: int = 0
    hardware_type: int = 1
    protocol_type: int = EthernetFrame.TYPE_IPv4
    hardware_address_size: int = ETHERNET_ADDRESS_LENGTH
    protocol_address_size: int = 4

    def supported(self) -> bool:
        return (
            self.hardware_type == self.TYPE_ETHERNET
            and self.protocol_type == EthernetFrame.TYPE_IPv4
            and self.hardware_address_size == ETHERNET_ADDRESS_LENGTH
            and self.protocol_address_size == 4
            and self.opcode in (self.OPCODE_REQUEST, self.OPCODE_REPLY)
        )

    def serialize(self) -> bytes:
        if not self.supported():
            raise ValueError("cannot serialize an unsupported ARP message")
        return struct.pack(
            self._FORMAT,
            self.hardware_type,
            self.protocol_type,
            self.hardware_address_size,
            self.protocol_address_size,
            self.opcode,
            _check_ethernet_address(self.sender_ethernet_address),
            self.sender_ip_address,
            _check_ethernet_address(self.target_ethernet_address),
            self.target_ip_address,
        )

    @classmethod
    def parse(cls, data: bytes) -> ARPMessage:
        data = bytes(data)
        if len(data) < cls.LENGTH:
            raise ParseError("ARP message too short")
        fields = struct.unpack_from(cls._FORMAT, data)
        message = cls(
            hardware_type=fields[0],
            protocol_type=fields[1],
            hardware_address_size=fields[2],
            protocol_address_size=fields[3],
            opcode=fields[4],
            sender_ethernet_address=fields[5],
            sender_ip_address=fields[6],
            target_ethernet_address=fields[7],
            target_ip_address=fields[8],
        )
        if not message.supported():
            raise ParseError("unsupported ARP message")
        return message

    def summary(self) -> str:
        kind = {self.OPCODE_REQUEST: "REQUEST", self.OPCODE_REPLY: "REPLY"}.get(
            self.opcode, "(unknown type)"
        )
        sender = f"{ethernet_to_string(self.sender_ethernet_address)}/{_to_ipv4(self.sender_ip_address)}"
        target = f"{ethernet_to_string(self.target_ethernet_address)}/{_to_ipv4(self.target_ip_address)}"
        return f"opcode={kind}, sender={sender}, target={target}"


@dataclass
class InternetDatagram:
    """An IPv4 datagram: header fields plus payload.

    ``length`` is the total length; when ``None`` it is computed on
    serialization. The checksum is always computed on serialization.
    """

    PROTO_TCP: ClassVar[int] = 6
    DEFAULT_TTL: ClassVar[int] = 64
    HEADER_LENGTH: ClassVar[int] = 20

    src: int = 0
    dst: int = 0
    payload: bytes = b""
    ttl: int = 64
    proto: int = 6
    tos: int = 0
    ident: int = 0
    df: bool = True
    mf: bool = False
    offset: int = 0
    hlen: int = 5
    ver: int = 4
    length: int | None = None
    cksum: int = field(default=0, compare=False)

    def total_length(self) -> int:
        return self.length if self.length is not None else self.hlen * 4 + len(self.payload)

    def _header_bytes(self, checksum: int) -> bytes:
        flags = (int(self.df) << 14) | (int(self.mf) << 13) | (self.offset & 0x1FFF)
        header = struct.pack(
            "!BBHHHBBHII",
            (self.ver << 4) | self.hlen,
            self.tos,
            self.total_length(),
            self.ident,
            flags,
            self.ttl,
            self.proto,
            checksum,
            self.src,
            self.dst,
        )
        return header + bytes(self.hlen * 4 - self.HEADER_LENGTH)

    def serialize(self) -> bytes:
        if self.ver != 4:
            raise ValueError("wrong IP version")
        if self.hlen < 5 or self.hlen > 15:
            raise ValueError("invalid IPv4 header length")
        total = self.total_length()
        if total != self.hlen * 4 + len(self.payload):
            raise ValueError("IPv4 length field does not match header and payload size")
        if total > 0xFFFF:
            raise ValueError("IPv4 datagram too long")
        checksum = _internet_checksum(self._header_bytes(0))
        return self._header_bytes(checksum) + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> InternetDatagram:
        data = bytes(data)
        if len(data) < cls.HEADER_LENGTH:
            raise ParseError("IPv4 datagram shorter than the minimum header")
        first, tos, total, ident, flags, ttl, proto, cksum, src, dst = struct.unpack_from(
            "!BBHHHBBHII", data
        )
        ver, hlen = first >> 4, first & 0x0F
        if ver != 4:
            raise ParseError("wrong IP version")
        if hlen < 5:
            raise ParseError("IPv4 header too short")
        header_size = hlen * 4
        if len(data) < header_size:
            raise ParseError("IPv4 datagram shorter than its header")
        if _internet_checksum(data[:header_size]) != 0:
            raise ParseError("bad IPv4 header checksum")
        if total < header_size or total > len(data):
            raise ParseError("IPv4 length field inconsistent with datagram")
        return cls(
            src=src,
            dst=dst,
            payload=data[header_size:total],
            ttl=ttl,
            proto=proto,
            tos=tos,
            ident=ident,
            df=bool(flags & 0x4000),
            mf=bool(flags & 0x2000),
            offset=flags & 0x1FFF,
            hlen=hlen,
            ver=ver,
            length=total,
            cksum=cksum,
        )

    def summary(self) -> str:
        return (
            f"IPv4, len={self.total_length()}, protocol={self.proto}, ttl={self.ttl}, "
            f"src={_to_ipv4(self.src)}, dst={_to_ipv4(self.dst)}"
        )


class NetworkInterface:
    """Connects IPv4 to Ethernet, resolving next-hop addresses with ARP.

    Frames to transmit are appended to ``frames_out``.
    """

    def __init__(self, ethernet_address: bytes, ip_address: AddressLike) -> None:
        self._ethernet_address = _check_ethernet_address(ethernet_address)
        self._ip_address = _to_ipv4(ip_address)
        self.frames_out: deque[EthernetFrame] = deque()
        self._arp_table: dict[int, tuple[bytes, int]] = {}
        self._waiting: dict[int, int] = {}
        self._pending: list[tuple[ipaddress.IPv4Address, InternetDatagram]] = []
        self._time = 0
        logger.debug(
            "Network interface has Ethernet address %s and IP address %s",
            ethernet_to_string(self._ethernet_address),
            self._ip_address,
        )

    def __repr__(self) -> str:
        return (
            f"NetworkInterface({ethernet_to_string(self._ethernet_address)}, "
            f"{self._ip_address})"
        )

    @property
    def ethernet_address(self) -> bytes:
        return self._ethernet_address

    @property
    def ip_address(self) -> ipaddress.IPv4Address:
        return self._ip_address

    def broadcast_frame(self, ip: int) -> EthernetFrame:
        """Build an ARP request for ``ip`` addressed to every host on the link."""
        request = ARPMessage(
            opcode=ARPMessage.OPCODE_REQUEST,
            sender_ethernet_address=self._ethernet_address,
            sender_ip_address=int(self._ip_address),
            target_ethernet_address=bytes(ETHERNET_ADDRESS_LENGTH),
            target_ip_address=int(ip),
        )
        return EthernetFrame(
            dst=ETHERNET_BROADCAST,
            src=self._ethernet_address,
            type=EthernetFrame.TYPE_ARP,
            payload=request.serialize(),
        )

    def send_datagram(self, dgram: InternetDatagram, next_hop: AddressLike) -> None:
        """Send ``dgram`` toward ``next_hop``, queuing it behind ARP if needed."""
        hop = _to_ipv4(next_hop)
        hop_ip = int(hop)
        entry = self._arp_table.get(hop_ip)
        if entry is None:
            self._pending.append((hop, dgram))
            if hop_ip not in self._waiting:
                self.frames_out.append(self.broadcast_frame(hop_ip))
                self._waiting[hop_ip] = self._time
            return
        self.frames_out.append(
            EthernetFrame(
                dst=entry[0],
                src=self._ethernet_address,
                type=EthernetFrame.TYPE_IPv4,
                payload=dgram.serialize(),
            )
        )

    def recv_frame(self, frame: EthernetFrame) -> InternetDatagram | None:
        """Handle an incoming frame; return the datagram it carries, if any."""
        if frame.dst != ETHERNET_BROADCAST and frame.dst != self._ethernet_address:
            return None

        if frame.type == EthernetFrame.TYPE_IPv4:
            try:
                return InternetDatagram.parse(frame.payload)
            except ParseError:
                return None

        try:
            message = ARPMessage.parse(frame.payload)
        except ParseError:
            return None

        own_ip = int(self._ip_address)
        sender_ip = message.sender_ip_address
        if message.opcode == ARPMessage.OPCODE_REQUEST and message.target_ip_address == own_ip:
            reply = ARPMessage(
                opcode=ARPMessage.OPCODE_REPLY,
                sender_ethernet_address=self._ethernet_address,
                sender_ip_address=own_ip,
                target_ethernet_address=message.sender_ethernet_address,
                target_ip_address=sender_ip,
            )
            self.frames_out.append(
                EthernetFrame(
                    dst=message.sender_ethernet_address,
                    src=self._ethernet_address,
                    type=EthernetFrame.TYPE_ARP,
                    payload=reply.serialize(),
                )
            )

        self._arp_table[sender_ip] = (message.sender_ethernet_address, self._time)

        ready = [(hop, dgram) for hop, dgram in self._pending if int(hop) == sender_ip]
        self._pending = [(hop, dgram) for hop, dgram in self._pending if int(hop) != sender_ip]
        for hop, dgram in ready:
            self.send_datagram(dgram, hop)

        self._waiting.pop(sender_ip, None)
        return None

    def tick(self, ms_since_last_tick: int) -> None:
        """Advance time: expire ARP entries and repeat unanswered ARP requests."""
        self._time += ms_since_last_tick

        self._arp_table = {
            ip: entry
            for ip, entry in self._arp_table.items()
            if self._time - entry[1] < ARP_ENTRY_TTL_MS
        }

        for ip, sent_at in self._waiting.items():
            if self._time - sent_at >= ARP_REQUEST_RETRY_MS:
                self.frames_out.append(self.broadcast_frame(ip))
                self._waiting[ip] = self._time