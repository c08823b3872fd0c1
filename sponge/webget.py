"""Fetch a web page over plain HTTP and write the whole response."""

from __future__ import annotations

import logging
import socket
import sys
from typing import BinaryIO, Optional, Sequence

logger = logging.getLogger(__name__)

_RECV_SIZE = 65536


def build_request(host: str, path: str) -> bytes:
    """The HTTP/1.1 GET request for ``path`` on ``host`` that closes the connection."""
    return (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: {host}\r\n"
        "Connection: close\r\n"
        "\r\n"
    ).encode()


def get_url(host: str, path: str, out: Optional[BinaryIO] = None) -> int:
    """Request ``path`` from the ``http`` service on ``host`` and copy everything received.

    Returns the number of bytes written to ``out`` (standard output by default).
    """
    sink = sys.stdout.buffer if out is None else out
    total = 0
    with socket.create_connection((host, "http")) as sock:
        sock.sendall(build_request(host, path))
        sock.shutdown(socket.SHUT_WR)
        while chunk := sock.recv(_RECV_SIZE):
            sink.write(chunk)
            total += len(chunk)
    sink.flush()
    logger.debug("get_url(%s, %s) received %d bytes", host, path, total)
    return total


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return a process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print("Usage: webget HOST PATH", file=sys.stderr)
        print("\tExample: webget example.com /index.html", file=sys.stderr)
        return 1
    host, path = args
    try:
        get_url(host, path)
    except Exception as error:  # noqa: BLE001 - report any failure and exit non-zero
        print(error, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())