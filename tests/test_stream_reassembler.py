import pytest

from sponge.stream_reassembler import InconsistentSubstringError, StreamReassembler

CAPACITY = 65000


def test_in_order_substring_is_readable():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"abcd", 0, False)
    stream = reassembler.stream_out()
    assert stream.read(len(b"abcd")) == b"abcd"
    assert reassembler.empty() is True
    assert stream.input_ended() is False


def test_out_of_order_substrings_are_joined():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"cd", len(b"ab"), False)
    assert reassembler.unassembled_bytes() == len(b"cd")
    assert reassembler.stream_out().buffer_size() == 0
    reassembler.push_substring(b"ab", 0, False)
    assert reassembler.unassembled_bytes() == 0
    assert reassembler.stream_out().read(CAPACITY) == b"ab" + b"cd"


def test_duplicates_counted_once():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"cd", 2, False)
    reassembler.push_substring(b"cd", 2, False)
    assert reassembler.unassembled_bytes() == len(b"cd")


def test_overlapping_consistent_substrings():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"bcd", 1, False)
    reassembler.push_substring(b"abc", 0, False)
    assert reassembler.stream_out().read(CAPACITY) == b"abcd"
    assert reassembler.empty() is True


def test_already_assembled_bytes_are_ignored():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"abcd", 0, False)
    reassembler.push_substring(b"ab", 0, False)
    assert reassembler.stream_out().bytes_written() == len(b"abcd")
    assert reassembler.unassembled_bytes() == 0


def test_inconsistent_substring_raises():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"cd", 2, False)
    with pytest.raises(InconsistentSubstringError):
        reassembler.push_substring(b"cx", 2, False)


def test_eof_ends_output():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"ab", 0, True)
    stream = reassembler.stream_out()
    assert stream.input_ended() is True
    assert stream.read(CAPACITY) == b"ab"
    assert stream.eof() is True


def test_eof_waits_for_gap_to_fill():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"c", 2, True)
    stream = reassembler.stream_out()
    assert stream.input_ended() is False
    reassembler.push_substring(b"ab", 0, False)
    assert stream.input_ended() is True
    assert stream.read(CAPACITY) == b"abc"


def test_empty_eof_substring_ends_stream():
    reassembler = StreamReassembler(CAPACITY)
    reassembler.push_substring(b"", 0, True)
    assert reassembler.stream_out().eof() is True


def test_bytes_beyond_capacity_are_discarded():
    capacity = 2
    reassembler = StreamReassembler(capacity)
    reassembler.push_substring(b"abc", 0, False)
    stream = reassembler.stream_out()
    assert stream.buffer_size() == capacity
    assert stream.peek_output(capacity) == b"abc"[:capacity]
    assert reassembler.unassembled_bytes() == 0


def test_capacity_window_moves_after_reading():
    capacity = 2
    reassembler = StreamReassembler(capacity)
    reassembler.push_substring(b"ab", 0, False)
    reassembler.push_substring(b"cd", 2, False)
    assert reassembler.unassembled_bytes() == 0
    stream = reassembler.stream_out()
    assert stream.read(capacity) == b"ab"
    reassembler.push_substring(b"cd", 2, False)
    assert stream.read(capacity) == b"cd"


def test_unassembled_bytes_share_capacity_with_output():
    capacity = 4
    reassembler = StreamReassembler(capacity)
    reassembler.push_substring(b"ab", 0, False)
    reassembler.push_substring(b"defg", 3, False)
    assert reassembler.unassembled_bytes() == len(b"d")
    reassembler.push_substring(b"c", 2, False)
    assert reassembler.stream_out().read(capacity) == b"abcd"