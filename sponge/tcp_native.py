"""Connect to, or accept one connection at, a TCP address and copy stdin/stdout over it."""

from __future__ import annotations

import socket
import sys
from typing import Optional, Sequence

from sponge.stream_copy import bidirectional_stream_copy

USAGE = (
    "Usage: tcp_native [-l] <host> <port>\n\n"
    "  -l specifies listen mode; <host>:<port> is the listening address."
)


class _UsageError(ValueError):
    """Raised when the command-line arguments are incomplete."""


def _resolve(host: str, port: str) -> tuple:
    return socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0]


def open_socket(argv: Sequence[str]) -> socket.socket:
    """Return a connected TCP socket described by ``argv``.

    ``[host, port]`` connects; ``["-l", host, port]`` listens there and
    accepts exactly one connection.
    """
    args = list(argv)
    server_mode = bool(args) and args[0] == "-l"
    if len(args) < 2 or (server_mode and len(args) < 3):
        raise _UsageError("required arguments are missing")

    if server_mode:
        family, kind, proto, _, address = _resolve(args[1], args[2])
        with socket.socket(family, kind, proto) as listener:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(address)
            listener.listen()
            connection, _ = listener.accept()
            return connection

    family, kind, proto, _, address = _resolve(args[0], args[1])
    sock = socket.socket(family, kind, proto)
    try:
        sock.connect(address)
    except BaseException:
        sock.close()
        raise
    return sock


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return a process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        sock = open_socket(args)
        with sock:
            bidirectional_stream_copy(sock)
    except _UsageError:
        print(USAGE, file=sys.stderr)
        return 1
    except Exception as error:  # noqa: BLE001 - report any failure and exit non-zero
        print(f"Exception: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())