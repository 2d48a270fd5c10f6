import pytest

from unidrivers.rtc import (
    REG_DAY,
    REG_HOURS,
    REG_MINUTES,
    REG_MONTH,
    REG_SECONDS,
    REG_STATUS_A,
    REG_STATUS_B,
    REG_WEEKDAY,
    REG_YEAR,
    RTC,
    RTCTime,
    bcd_to_binary,
    decode_registers,
)
from unidrivers.timer import Timer


def to_bcd(n):
    return ((n // 10) << 4) | (n % 10)


def make_cmos(values, busy_reads=0):
    state = {"busy": busy_reads}

    def read(reg):
        if reg == REG_STATUS_A:
            if state["busy"]:
                state["busy"] -= 1
                return 0x80
            return 0
        return values[reg]

    return read, state


@pytest.mark.parametrize("n", range(100))
def test_bcd_round_trip(n):
    assert bcd_to_binary(to_bcd(n)) == n


def test_decode_bcd_24_hour():
    result = decode_registers(0x30, 0x45, 0x12, 0x25, 0x12, 0x24, 3, 0x02)
    assert result == RTCTime(30, 45, 12, 25, 12, 2024, 3)


def test_decode_binary_mode_keeps_values():
    result = decode_registers(30, 45, 12, 25, 12, 24, 5, 0x06)
    assert result == RTCTime(30, 45, 12, 25, 12, 2000 + 24, 5)


def test_decode_12_hour_pm():
    assert decode_registers(0, 0, 0x81, 1, 1, 0, 1, 0x00).hour == 13


def test_decode_12_hour_am_untouched():
    am = decode_registers(0, 0, to_bcd(9), 1, 1, 0, 1, 0x00)
    assert am.hour == 9


def test_read_time_waits_for_update():
    registers = {
        REG_SECONDS: 0x30, REG_MINUTES: 0x45, REG_HOURS: 0x12, REG_DAY: 0x25,
        REG_MONTH: 0x12, REG_YEAR: 0x24, REG_WEEKDAY: 3, REG_STATUS_B: 0x02,
    }
    read, state = make_cmos(registers, busy_reads=3)
    rtc = RTC(read, Timer())
    assert rtc.read_time() == decode_registers(0x30, 0x45, 0x12, 0x25, 0x12, 0x24, 3, 0x02)
    assert state["busy"] == 0


def test_read_time_uses_second_reading():
    reads = {"n": 0}
    later_second = to_bcd(31)

    def read(reg):
        if reg == REG_STATUS_A:
            return 0
        if reg == REG_SECONDS:
            reads["n"] += 1
            return to_bcd(30) if reads["n"] == 1 else later_second
        return {REG_STATUS_B: 0x02, REG_WEEKDAY: 1}.get(reg, to_bcd(1))

    assert RTC(read, Timer()).read_time().second == bcd_to_binary(later_second)


def test_uptime_counts_from_creation():
    timer = Timer()
    timer.tick(1000)
    read, _ = make_cmos({})
    rtc = RTC(read, timer)
    assert rtc.uptime_seconds() == 0
    timer.tick(250)
    assert rtc.uptime_seconds() == 2