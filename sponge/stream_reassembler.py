"""Reassembly of possibly out-of-order, overlapping substrings into a byte stream."""

from __future__ import annotations

from sponge.byte_stream import ByteStream


class InconsistentSubstringError(ValueError):
    """Raised when a substring disagrees with bytes already received."""


class StreamReassembler:
    """Assembles indexed substrings into an in-order :class:`ByteStream`.

    The capacity limits both reassembled bytes still sitting in the output
    stream and bytes stored while waiting for earlier ones; anything beyond
    it is silently discarded.
    """

    def __init__(self, capacity: int) -> None:
        self._output = ByteStream(capacity)
        self._capacity = capacity
        self._pending: dict[int, int] = {}
        self._next_index = 0
        self._eof_index: int | None = None

    def __repr__(self) -> str:
        return (
            f"StreamReassembler(capacity={self._capacity}, next_index={self._next_index}, "
            f"unassembled={len(self._pending)})"
        )

    def push_substring(self, data: bytes, index: int, eof: bool) -> None:
        """Accept ``data`` starting at stream position ``index``.

        Newly contiguous bytes are written to the output stream. If ``eof``
        is true, the last byte of ``data`` is the last byte of the stream.
        """
        end = index + len(data)
        window_end = self._next_index + self._capacity - self._output.buffer_size()
        limit = min(end, window_end)
        if self._eof_index is not None:
            limit = min(limit, self._eof_index)
        if eof:
            self._eof_index = end if self._eof_index is None else min(self._eof_index, end)

        for position in range(max(index, self._next_index), limit):
            byte = data[position - index]
            stored = self._pending.get(position)
            if stored is None:
                self._pending[position] = byte
            elif stored != byte:
                raise InconsistentSubstringError(
                    f"byte at index {position} conflicts with previously received data"
                )

        assembled = bytearray()
        while (
            self._eof_index is None or self._next_index < self._eof_index
        ) and self._next_index in self._pending:
            assembled.append(self._pending.pop(self._next_index))
            self._next_index += 1

        self._output.write(bytes(assembled))
        if self._next_index == self._eof_index:
            self._output.end_input()

    def stream_out(self) -> ByteStream:
        """The reassembled in-order byte stream."""
        return self._output

    def unassembled_bytes(self) -> int:
        """Number of bytes stored but not yet reassembled, each counted once."""
        return len(self._pending)

    def empty(self) -> bool:
        """True if no bytes are waiting to be assembled."""
        return not self._pending