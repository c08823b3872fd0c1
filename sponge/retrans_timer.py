"""Retransmission timer with exponential back-off."""

from __future__ import annotations

import enum


class TimerState(enum.Enum):
    RUNNING = enum.auto()
    STOPPED = enum.auto()


class Timer:
    """A retransmission timer driven by explicit ``tick`` calls.

    The timer starts stopped. While running it accumulates elapsed time and
    expires once that reaches the current retransmission timeout (RTO).
    """

    def __init__(self, timeout: int) -> None:
        self._state = TimerState.STOPPED
        self._initial_rto = timeout
        self._rto = timeout
        self._elapsed = 0

    def __repr__(self) -> str:
        return f"Timer(state={self._state.name}, rto={self._rto}, elapsed={self._elapsed})"

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def rto(self) -> int:
        """The current retransmission timeout in milliseconds."""
        return self._rto

    def tick(self, ms_since_last_tick: int) -> None:
        """Advance time; only a running timer accumulates it."""
        if self._state is TimerState.RUNNING:
            self._elapsed += ms_since_last_tick

    def timer_expired(self) -> bool:
        return self._state is TimerState.RUNNING and self._elapsed >= self._rto

    def reset_timer(self) -> None:
        """Restore the initial RTO and clear the elapsed time."""
        self._rto = self._initial_rto
        self._elapsed = 0

    def handle_expired(self) -> None:
        """Double the RTO and restart the count after an expiry."""
        self._rto *= 2
        self._elapsed = 0

    def start_timer(self) -> None:
        """Start a stopped timer from a fresh state; no effect if running."""
        if self._state is TimerState.STOPPED:
            self._state = TimerState.RUNNING
            self.reset_timer()

    def stop_timer(self) -> None:
        """Stop a running timer and reset it; no effect if stopped."""
        if self._state is TimerState.RUNNING:
            self._state = TimerState.STOPPED
            self.reset_timer()