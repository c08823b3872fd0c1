"""Byte streams, stream reassembly, a retransmission timer, ARP-backed network interfaces, IPv4 routing and small socket commands."""

__version__ = "0.1.0"