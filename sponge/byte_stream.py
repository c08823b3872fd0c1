"""A flow-controlled, finite, in-memory byte stream."""

from __future__ import annotations


class ByteStream:
    """An in-order byte stream with a fixed capacity.

    Bytes are written on the input side and read from the output side.
    The writer can end the input, after which the stream reaches EOF
    once every buffered byte has been read.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._buffer = bytearray()
        self._written = 0
        self._read = 0
        self._input_ended = False
        self._error = False

    def __repr__(self) -> str:
        return (
            f"ByteStream(capacity={self._capacity}, buffered={len(self._buffer)}, "
            f"ended={self._input_ended})"
        )

    # Input side

    def write(self, data: bytes) -> int:
        """Write as much of ``data`` as fits; return the number of bytes accepted."""
        accepted = data[: self.remaining_capacity()]
        self._buffer += accepted
        self._written += len(accepted)
        return len(accepted)

    def remaining_capacity(self) -> int:
        """Number of additional bytes the stream has room for."""
        return self._capacity - len(self._buffer)

    def end_input(self) -> None:
        """Signal that no more bytes will be written."""
        self._input_ended = True

    def set_error(self) -> None:
        """Mark the stream as having suffered an error."""
        self._error = True

    # Output side

    def peek_output(self, length: int) -> bytes:
        """Return up to ``length`` bytes from the front without removing them."""
        return bytes(self._buffer[: max(length, 0)])

    def pop_output(self, length: int) -> None:
        """Remove up to ``length`` bytes from the front of the buffer."""
        count = min(max(length, 0), len(self._buffer))
        del self._buffer[:count]
        self._read += count

    def read(self, length: int) -> bytes:
        """Remove and return up to ``length`` bytes from the front."""
        data = self.peek_output(length)
        self.pop_output(length)
        return data

    def input_ended(self) -> bool:
        return self._input_ended

    def error(self) -> bool:
        return self._error

    def buffer_size(self) -> int:
        """Number of bytes that can currently be read."""
        return len(self._buffer)

    def buffer_empty(self) -> bool:
        return not self._buffer

    def eof(self) -> bool:
        """True once the input has ended and every byte has been read."""
        return self._input_ended and not self._buffer

    # Accounting

    def bytes_written(self) -> int:
        """Total number of bytes accepted by ``write``."""
        return self._written

    def bytes_read(self) -> int:
        """Total number of bytes popped from the stream."""
        return self._read