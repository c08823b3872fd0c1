"""A UDP relay: each pair of ports forwards datagrams between the peers last heard on them."""

from __future__ import annotations

import selectors
import socket
import sys
from typing import Optional, Sequence

_MAX_DATAGRAM = 65536


def _format_address(address: tuple) -> str:
    return f"{address[0]}:{address[1]}"


class BouncerPair:
    """Two UDP sockets that relay non-empty datagrams to each other's last known peer."""

    X = 0
    Y = 1
    _NAMES = ("X", "Y")

    def __init__(self, host: str, x_port: int, y_port: int) -> None:
        self.sockets = (
            socket.socket(socket.AF_INET, socket.SOCK_DGRAM),
            socket.socket(socket.AF_INET, socket.SOCK_DGRAM),
        )
        try:
            self.sockets[self.X].bind((host, x_port))
            self.sockets[self.Y].bind((host, y_port))
        except OSError:
            self.close()
            raise
        self.peers: list[Optional[tuple]] = [None, None]

    def __repr__(self) -> str:
        return f"BouncerPair({self.sockets[0].getsockname()}, {self.sockets[1].getsockname()})"

    def __enter__(self) -> BouncerPair:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        for sock in self.sockets:
            sock.close()

    def handle(self, side: int) -> bytes:
        """Receive one datagram on ``side`` and forward it to the other side's peer.

        The sender becomes this side's peer. Empty datagrams only announce the
        sender and are not forwarded. Returns the payload received.
        """
        if side not in (self.X, self.Y):
            raise ValueError(f"side must be {self.X} or {self.Y}, not {side!r}")
        other = 1 - side
        sock = self.sockets[side]
        payload, source = sock.recvfrom(_MAX_DATAGRAM)
        if self.peers[side] != source:
            self.peers[side] = source
            print(
                f"Learned new address for {self._NAMES[side]} ( "
                f"{_format_address(sock.getsockname())} at {_format_address(source)}",
                file=sys.stderr,
            )
        target = self.peers[other]
        if target is not None and payload:
            self.sockets[other].sendto(payload, target)
        return payload


def run_bouncer(lower_port: int = 1024, upper_port: int = 64000, host: str = "0.0.0.0") -> None:
    """Relay forever on port pairs (p, p + 1) for p from ``lower_port`` to ``upper_port`` step 2."""
    if not 0 <= lower_port <= upper_port or upper_port + 1 > 65535:
        raise ValueError(f"invalid port range {lower_port}..{upper_port}")
    pairs: list[BouncerPair] = []
    with selectors.DefaultSelector() as selector:
        try:
            for port in range(lower_port, upper_port + 1, 2):
                pair = BouncerPair(host, port, port + 1)
                pairs.append(pair)
                for side, sock in enumerate(pair.sockets):
                    selector.register(sock, selectors.EVENT_READ, (pair, side))
            print("Starting event loop...", file=sys.stderr)
            while True:
                for key, _ in selector.select():
                    pair, side = key.data
                    pair.handle(side)
        finally:
            for pair in pairs:
                pair.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the relay on the default port range; return a process exit status."""
    try:
        run_bouncer()
    except Exception as error:  # noqa: BLE001 - report any failure and exit non-zero
        print(error, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())