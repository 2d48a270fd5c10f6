"""USB HID boot-protocol keyboards and mice: report decoding, key repeat and pointer tracking."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .keyboard import ESCAPE, KeyBuffer, SpecialKey

# HID class requests
HID_REQ_GET_REPORT = 0x01
HID_REQ_GET_IDLE = 0x02
HID_REQ_GET_PROTOCOL = 0x03
HID_REQ_SET_REPORT = 0x09
HID_REQ_SET_IDLE = 0x0A
HID_REQ_SET_PROTOCOL = 0x0B

# Report types
HID_REPORT_INPUT = 1
HID_REPORT_OUTPUT = 2
HID_REPORT_FEATURE = 3

# Protocols
HID_PROTOCOL_BOOT = 0
HID_PROTOCOL_REPORT = 1

# Keyboard modifier bits
MOD_LEFT_CTRL = 1 << 0
MOD_LEFT_SHIFT = 1 << 1
MOD_LEFT_ALT = 1 << 2
MOD_LEFT_GUI = 1 << 3
MOD_RIGHT_CTRL = 1 << 4
MOD_RIGHT_SHIFT = 1 << 5
MOD_RIGHT_ALT = 1 << 6
MOD_RIGHT_GUI = 1 << 7

# Mouse button bits
MOUSE_LEFT = 1 << 0
MOUSE_RIGHT = 1 << 1
MOUSE_MIDDLE = 1 << 2

REPEAT_DELAY_TICKS = 50
REPEAT_RATE_TICKS = 3
DEFAULT_INTERVAL_MS = 10
MS_PER_TICK = 10

DEFAULT_SCREEN_WIDTH = 1024
DEFAULT_SCREEN_HEIGHT = 768

_KEYBOARD_REPORT_SIZE = 8
_MIN_REPORT_SIZE = 3
_KEY_SLOTS = 6

_HID_LEFT = 0x50
_HID_RIGHT = 0x4F


def _table(runs: dict[int, str], specials: dict[int, int] | None = None) -> tuple[int, ...]:
    table = [0] * 128
    for start, chars in runs.items():
        for offset, ch in enumerate(chars):
            table[start + offset] = ord(ch)
    for index, code in (specials or {}).items():
        table[index] = code
    return tuple(table)


_KEYPAD = "/*-+\n1234567890."

# US layout, HID usage page 0x07.
_PLAIN = _table(
    {
        0x04: "abcdefghijklmnopqrstuvwxyz",
        0x1E: "1234567890\n\x1b\b\t -=[]\\#;'`,./",
        0x54: _KEYPAD,
        0x67: "=",
    },
    {
        0x4A: SpecialKey.HOME,
        0x4C: SpecialKey.DELETE,
        0x4D: SpecialKey.END,
        0x4F: SpecialKey.RIGHT,
        0x50: SpecialKey.LEFT,
        0x51: SpecialKey.DOWN,
        0x52: SpecialKey.UP,
    },
)
_SHIFTED = _table(
    {
        0x04: "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
        0x1E: '!@#$%^&*()\n\x1b\b\t _+{}|~:"~<>?',
        0x54: _KEYPAD,
        0x67: "=",
    }
)

_CTRL_SPECIAL = {
    ord("["): ESCAPE, ord("{"): ESCAPE,
    ord("\\"): 28, ord("|"): 28,
    ord("]"): 29, ord("}"): 29,
}


def _signed8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


@dataclass(frozen=True)
class KeyboardReport:
    """An 8-byte boot-protocol keyboard report."""

    modifiers: int = 0
    reserved: int = 0
    keys: tuple[int, ...] = (0,) * _KEY_SLOTS

    @classmethod
    def parse(cls, data: bytes) -> KeyboardReport:
        """Decode a report; short reports of at least 3 bytes are zero-padded."""
        if len(data) < _MIN_REPORT_SIZE:
            raise ValueError(f"keyboard report needs at least {_MIN_REPORT_SIZE} bytes, got {len(data)}")
        raw = bytes(data[:_KEYBOARD_REPORT_SIZE]).ljust(_KEYBOARD_REPORT_SIZE, b"\0")
        modifiers, reserved, *keys = raw
        return cls(modifiers, reserved, tuple(keys))

    @property
    def shift(self) -> bool:
        return bool(self.modifiers & (MOD_LEFT_SHIFT | MOD_RIGHT_SHIFT))

    @property
    def ctrl(self) -> bool:
        return bool(self.modifiers & (MOD_LEFT_CTRL | MOD_RIGHT_CTRL))

    def pressed(self) -> list[int]:
        """Key codes in the report that map into the key table, in report order."""
        return [key for key in self.keys if 0 < key < 128]


@dataclass(frozen=True)
class MouseReport:
    """A boot-protocol mouse report: buttons, signed X/Y movement and optional wheel."""

    buttons: int = 0
    x: int = 0
    y: int = 0
    wheel: int = 0

    @classmethod
    def parse(cls, data: bytes) -> MouseReport:
        if len(data) < _MIN_REPORT_SIZE:
            raise ValueError(f"mouse report needs at least {_MIN_REPORT_SIZE} bytes, got {len(data)}")
        wheel = _signed8(data[3]) if len(data) >= 4 else 0
        buttons, x, y = struct.unpack_from("<Bbb", bytes(data))
        return cls(buttons, x, y, wheel)


def poll_interval_ticks(interval: int) -> int:
    """Timer ticks to wait between polls of an endpoint with ``interval`` milliseconds."""
    if interval < 1:
        interval = DEFAULT_INTERVAL_MS
    return max((interval + MS_PER_TICK - 1) // MS_PER_TICK, 1)


class HidKeyboard:
    """Turns keyboard reports into buffered key codes, with timer-driven key repeat."""

    def __init__(self) -> None:
        self.buffer = KeyBuffer()
        self.last_report = KeyboardReport()
        self.repeat_keycode = 0
        self.repeat_shift = False
        self.repeat_start_tick = 0
        self.repeat_last_tick = 0

    def _start_repeat(self, keycode: int, shift: bool, now: int) -> None:
        self.repeat_keycode = keycode
        self.repeat_shift = shift
        self.repeat_start_tick = now
        self.repeat_last_tick = now

    def process_report(self, report: KeyboardReport, now: int) -> None:
        """Handle a new report; only keys absent from the previous report count as presses."""
        shift, ctrl = report.shift, report.ctrl
        held = report.pressed()
        previous = set(self.last_report.keys)

        for keycode in held:
            if keycode in previous:
                continue
            if shift and keycode == _HID_LEFT:
                self.buffer.push(SpecialKey.SHIFT_LEFT)
                continue
            if shift and keycode == _HID_RIGHT:
                self.buffer.push(SpecialKey.SHIFT_RIGHT)
                continue

            code = (_SHIFTED if shift else _PLAIN)[keycode]
            if ctrl and code:
                ch = chr(code)
                if "a" <= ch <= "z" or "A" <= ch <= "Z":
                    self.buffer.push(ord(ch.lower()) - ord("a") + 1)
                    self._start_repeat(keycode, shift, now)
                    continue
                if code in _CTRL_SPECIAL:
                    self.buffer.push(_CTRL_SPECIAL[code])
                    continue

            if code:
                self.buffer.push(code)
            self._start_repeat(keycode, shift, now)

        if not held:
            self.repeat_keycode = 0
        self.last_report = report

    def handle_repeat(self, now: int) -> None:
        """Emit a repeat of the held key once the delay has passed, at the repeat rate."""
        if self.repeat_keycode == 0:
            return
        if now - self.repeat_start_tick < REPEAT_DELAY_TICKS:
            return
        if now - self.repeat_last_tick >= REPEAT_RATE_TICKS:
            code = (_SHIFTED if self.repeat_shift else _PLAIN)[self.repeat_keycode]
            if code:
                self.buffer.push(code)
            self.repeat_last_tick = now

    def has_char(self) -> bool:
        return len(self.buffer) > 0

    def get_char(self) -> int | None:
        """Take the next key code, or None when nothing is buffered."""
        return self.buffer.pop()


class HidMouse:
    """Tracks pointer position, buttons and accumulated wheel movement from mouse reports."""

    def __init__(self, width: int = DEFAULT_SCREEN_WIDTH, height: int = DEFAULT_SCREEN_HEIGHT) -> None:
        self.width = width
        self.height = height
        self.x = width // 2
        self.y = height // 2
        self.left = False
        self.right = False
        self.middle = False
        self.scroll = 0
        self.data_received = False

    @property
    def available(self) -> bool:
        """True once the mouse has actually sent data."""
        return self.data_received

    @property
    def state(self) -> tuple[int, int, bool, bool, bool]:
        return self.x, self.y, self.left, self.right, self.middle

    def process_report(self, report: MouseReport, transferred: int) -> None:
        """Apply a report of ``transferred`` bytes; the wheel counts only when it was sent."""
        self.data_received = True
        self.left = bool(report.buttons & MOUSE_LEFT)
        self.right = bool(report.buttons & MOUSE_RIGHT)
        self.middle = bool(report.buttons & MOUSE_MIDDLE)

        self.x += report.x
        self.y += report.y
        if transferred >= 4:
            self.scroll = _signed8(self.scroll + report.wheel)

        self.x = min(max(self.x, 0), self.width - 1)
        self.y = min(max(self.y, 0), self.height - 1)

    def set_screen_size(self, width: int, height: int) -> None:
        """Set the screen bounds and centre the pointer."""
        self.width = width
        self.height = height
        self.x = width // 2
        self.y = height // 2

    def take_scroll(self) -> int:
        """Return the wheel movement since the last call and reset it."""
        delta, self.scroll = self.scroll, 0
        return delta