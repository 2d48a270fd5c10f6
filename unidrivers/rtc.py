"""CMOS real-time clock: register decoding and uptime."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .timer import Timer

CMOS_ADDR = 0x70
CMOS_DATA = 0x71

REG_SECONDS = 0x00
REG_MINUTES = 0x02
REG_HOURS = 0x04
REG_WEEKDAY = 0x06
REG_DAY = 0x07
REG_MONTH = 0x08
REG_YEAR = 0x09
REG_STATUS_A = 0x0A
REG_STATUS_B = 0x0B

UPDATE_IN_PROGRESS = 0x80
STATUS_B_24_HOUR = 0x02
STATUS_B_BINARY = 0x04
PM_BIT = 0x80

TICKS_PER_SECOND = 100
CENTURY_BASE = 2000

_DATE_REGISTERS = (REG_SECONDS, REG_MINUTES, REG_HOURS, REG_DAY, REG_MONTH, REG_YEAR)


@dataclass(frozen=True)
class RTCTime:
    second: int
    minute: int
    hour: int
    day: int
    month: int
    year: int
    weekday: int


def bcd_to_binary(value: int) -> int:
    """Convert a packed BCD byte to its binary value."""
    return (((value >> 4) * 10) + (value & 0x0F)) & 0xFF


def decode_registers(second, minute, hour, day, month, year, weekday, status_b) -> RTCTime:
    """Turn raw CMOS register values into a time, honouring the format bits in status B."""
    if not status_b & STATUS_B_BINARY:
        second = bcd_to_binary(second)
        minute = bcd_to_binary(minute)
        hour = bcd_to_binary(hour & 0x7F) | (hour & PM_BIT)
        day = bcd_to_binary(day)
        month = bcd_to_binary(month)
        year = bcd_to_binary(year)
    if not status_b & STATUS_B_24_HOUR and hour & PM_BIT:
        hour = ((hour & 0x7F) + 12) % 24
    return RTCTime(second, minute, hour, day, month, CENTURY_BASE + year, weekday)


class RTC:
    """Reads the clock through ``read_register`` and measures uptime against ``timer``."""

    def __init__(self, read_register: Callable[[int], int], timer: Timer) -> None:
        self._read = read_register
        self._timer = timer
        self.boot_ticks = timer.ticks

    def _wait_for_update(self) -> None:
        while self._read(REG_STATUS_A) & UPDATE_IN_PROGRESS:
            pass

    def _snapshot(self) -> tuple[int, ...]:
        return tuple(self._read(reg) for reg in _DATE_REGISTERS)

    def read_time(self) -> RTCTime:
        """Read the clock twice around updates and decode the later reading."""
        self._wait_for_update()
        self._snapshot()
        weekday = self._read(REG_WEEKDAY)
        self._wait_for_update()
        values = self._snapshot()
        status_b = self._read(REG_STATUS_B)
        return decode_registers(*values, weekday, status_b)

    def uptime_seconds(self) -> int:
        return (self._timer.ticks - self.boot_ticks) // TICKS_PER_SECOND