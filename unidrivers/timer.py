"""Programmable interval timer: a tick counter at a fixed frequency."""

from __future__ import annotations

PIT_FREQUENCY = 1193182
PIT_CHANNEL0_DATA = 0x40
PIT_COMMAND = 0x43


class Timer:
    """Counts ticks at ``frequency`` Hz and converts milliseconds to ticks."""

    def __init__(self, frequency: int = 100) -> None:
        if frequency <= 0:
            raise ValueError("frequency must be positive")
        self.frequency = frequency
        self.ticks = 0

    @property
    def divisor(self) -> int:
        """The 16-bit reload value programmed into PIT channel 0."""
        return (PIT_FREQUENCY // self.frequency) & 0xFFFF

    def tick(self, count: int = 1) -> int:
        """Advance by ``count`` ticks and return the new total."""
        if count < 0:
            raise ValueError("count must not be negative")
        self.ticks += count
        return self.ticks

    def ticks_for(self, ms: int) -> int:
        """Number of ticks in ``ms`` milliseconds, computed in 32-bit arithmetic."""
        return ((ms * self.frequency) & 0xFFFFFFFF) // 1000

    def deadline(self, ms: int) -> int:
        """The tick count at which a sleep of ``ms`` milliseconds ends."""
        return self.ticks + self.ticks_for(ms)

    def expired(self, deadline: int) -> bool:
        return self.ticks >= deadline