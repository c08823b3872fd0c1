"""Copy bytes both ways between a connected socket and a pair of local files."""

from __future__ import annotations

import os
import selectors
import socket
import sys
from typing import BinaryIO, Callable, Optional, Union

from sponge.byte_stream import ByteStream

MAX_COPY_LENGTH = 65536
BUFFER_SIZE = 1048576

FileLike = Union[int, BinaryIO]

_Selector = getattr(selectors, "PollSelector", selectors.SelectSelector)


def _fileno(stream: FileLike) -> int:
    return stream if isinstance(stream, int) else stream.fileno()


class _StreamCopy:
    """The four copy rules: input to socket and socket to output, each through a buffer."""

    def __init__(self, sock: socket.socket, source: FileLike, sink: FileLike) -> None:
        self._sock = sock
        self._sink = sink
        self._in_fd = _fileno(source)
        self._out_fd = _fileno(sink)
        self._sock_fd = sock.fileno()
        self._outbound = ByteStream(BUFFER_SIZE)
        self._inbound = ByteStream(BUFFER_SIZE)
        self._input_done = False
        self._socket_done = False
        self._outbound_shutdown = False
        self._inbound_shutdown = False

        sock.setblocking(False)
        os.set_blocking(self._in_fd, False)
        os.set_blocking(self._out_fd, False)

    # Interest predicates

    def _want_input(self) -> bool:
        return (
            not self._input_done
            and not self._outbound.error()
            and self._outbound.remaining_capacity() > 0
            and not self._inbound.error()
        )

    def _want_send(self) -> bool:
        return not self._outbound_shutdown and (
            not self._outbound.buffer_empty() or self._outbound.eof()
        )

    def _want_recv(self) -> bool:
        return (
            not self._socket_done
            and not self._inbound.error()
            and self._inbound.remaining_capacity() > 0
            and not self._outbound.error()
        )

    def _want_output(self) -> bool:
        return not self._inbound_shutdown and (
            not self._inbound.buffer_empty() or self._inbound.eof()
        )

    # Actions

    def _read_input(self) -> None:
        try:
            data = os.read(self._in_fd, self._outbound.remaining_capacity())
        except BlockingIOError:
            return
        if data:
            self._outbound.write(data)
        else:
            self._input_done = True
            self._outbound.end_input()

    def _send(self) -> None:
        chunk = self._outbound.peek_output(MAX_COPY_LENGTH)
        sent = 0
        if chunk:
            try:
                sent = self._sock.send(chunk)
            except BlockingIOError:
                return
        self._outbound.pop_output(sent)
        if self._outbound.eof():
            self._sock.shutdown(socket.SHUT_WR)
            self._outbound_shutdown = True

    def _recv(self) -> None:
        try:
            data = self._sock.recv(self._inbound.remaining_capacity())
        except BlockingIOError:
            return
        if data:
            self._inbound.write(data)
        else:
            self._socket_done = True
            self._inbound.end_input()

    def _write_output(self) -> None:
        chunk = self._inbound.peek_output(MAX_COPY_LENGTH)
        written = 0
        if chunk:
            try:
                written = os.write(self._out_fd, chunk)
            except BlockingIOError:
                return
        self._inbound.pop_output(written)
        if self._inbound.eof():
            if isinstance(self._sink, int):
                os.close(self._sink)
            else:
                self._sink.close()
            self._inbound_shutdown = True

    def run(self) -> None:
        rules: list[tuple[int, int, Callable[[], bool], Callable[[], None]]] = [
            (self._in_fd, selectors.EVENT_READ, self._want_input, self._read_input),
            (self._sock_fd, selectors.EVENT_WRITE, self._want_send, self._send),
            (self._sock_fd, selectors.EVENT_READ, self._want_recv, self._recv),
            (self._out_fd, selectors.EVENT_WRITE, self._want_output, self._write_output),
        ]
        while True:
            active = [rule for rule in rules if rule[2]()]
            if not active:
                return
            masks: dict[int, int] = {}
            for fd, event, _, _ in active:
                masks[fd] = masks.get(fd, 0) | event
            with _Selector() as selector:
                for fd, mask in masks.items():
                    selector.register(fd, mask)
                ready = {key.fd: events for key, events in selector.select()}
            for fd, event, wanted, action in active:
                if ready.get(fd, 0) & event and wanted():
                    action()


def bidirectional_stream_copy(
    sock: socket.socket,
    stdin: Optional[FileLike] = None,
    stdout: Optional[FileLike] = None,
) -> None:
    """Copy ``stdin`` to ``sock`` and ``sock`` to ``stdout`` until both directions finish.

    When the input ends, the socket's sending side is shut down; when the
    socket reaches end of file, ``stdout`` is closed.
    """
    source: FileLike = sys.stdin.buffer if stdin is None else stdin
    sink: FileLike = sys.stdout.buffer if stdout is None else stdout
    if not isinstance(sink, int):
        sink.flush()
    _StreamCopy(sock, source, sink).run()