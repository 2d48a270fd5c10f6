"""PS/2 keyboard: scancode set 1 decoding into a buffer of key codes."""

from __future__ import annotations

import string
from collections import deque
from enum import IntEnum

KEYBOARD_DATA_PORT = 0x60
KEYBOARD_STATUS_PORT = 0x64
KB_BUFFER_SIZE = 256

ESCAPE = 27

_EXTENDED_PREFIX = 0xE0
_RELEASE_BIT = 0x80
_LEFT_SHIFT = 0x2A
_RIGHT_SHIFT = 0x36
_CTRL = 0x1D
_CAPS_LOCK = 0x3A


class SpecialKey(IntEnum):
    """Key codes above the ASCII range for keys that have no character."""

    UP = 0x80
    DOWN = 0x81
    LEFT = 0x82
    RIGHT = 0x83
    HOME = 0x84
    END = 0x85
    DELETE = 0x86
    SHIFT_LEFT = 0x90
    SHIFT_RIGHT = 0x91


def _table(runs: dict[int, str]) -> tuple[int, ...]:
    table = [0] * 128
    common = {1: ESCAPE, 14: ord("\b"), 15: ord("\t"), 28: ord("\n"),
              55: ord("*"), 57: ord(" "), 74: ord("-"), 78: ord("+")}
    for index, code in common.items():
        table[index] = code
    for start, chars in runs.items():
        for offset, ch in enumerate(chars):
            table[start + offset] = ord(ch)
    return tuple(table)


# US layout, scancode set 1.
_PLAIN = _table({2: "1234567890-=", 16: "qwertyuiop[]", 30: "asdfghjkl;'`", 43: "\\zxcvbnm,./"})
_SHIFTED = _table({2: "!@#$%^&*()_+", 16: "QWERTYUIOP{}", 30: 'ASDFGHJKL:"~', 43: "|ZXCVBNM<>?"})

_EXTENDED_KEYS = {
    0x48: SpecialKey.UP,
    0x50: SpecialKey.DOWN,
    0x47: SpecialKey.HOME,
    0x4F: SpecialKey.END,
    0x53: SpecialKey.DELETE,
}
_EXT_LEFT = 0x4B
_EXT_RIGHT = 0x4D

_CTRL_SPECIAL = {
    ord("["): 27, ord("{"): 27,
    ord("\\"): 28, ord("|"): 28,
    ord("]"): 29, ord("}"): 29,
}


def _control_code(code: int) -> int | None:
    ch = chr(code)
    if "a" <= ch <= "z":
        return code - ord("a") + 1
    if "A" <= ch <= "Z":
        return code - ord("A") + 1
    return _CTRL_SPECIAL.get(code)


def _swap_case(code: int) -> int:
    ch = chr(code)
    return ord(ch.swapcase()) if ch in string.ascii_letters else code


class KeyBuffer:
    """FIFO of key codes; when full, new codes are dropped."""

    capacity = KB_BUFFER_SIZE - 1

    def __init__(self) -> None:
        self._codes: deque[int] = deque()

    def __len__(self) -> int:
        return len(self._codes)

    def push(self, code: int) -> bool:
        """Queue a code; return False if the buffer was full and it was dropped."""
        if len(self._codes) >= self.capacity:
            return False
        self._codes.append(code & 0xFF)
        return True

    def pop(self) -> int | None:
        """Take the oldest code, or None when empty."""
        return self._codes.popleft() if self._codes else None


class PS2Keyboard:
    """Tracks modifier state and turns scancodes into buffered key codes."""

    def __init__(self) -> None:
        self.buffer = KeyBuffer()
        self.shift = False
        self.ctrl = False
        self.caps_lock = False
        self._extended = False

    def feed(self, scancode: int) -> None:
        """Process one byte read from the keyboard data port."""
        scancode &= 0xFF
        if scancode == _EXTENDED_PREFIX:
            self._extended = True
            return
        if self._extended:
            self._extended = False
            self._feed_extended(scancode)
            return

        if scancode & _RELEASE_BIT:
            released = scancode & 0x7F
            if released in (_LEFT_SHIFT, _RIGHT_SHIFT):
                self.shift = False
            elif released == _CTRL:
                self.ctrl = False
            return

        if scancode in (_LEFT_SHIFT, _RIGHT_SHIFT):
            self.shift = True
            return
        if scancode == _CTRL:
            self.ctrl = True
            return
        if scancode == _CAPS_LOCK:
            self.caps_lock = not self.caps_lock
            return

        code = (_SHIFTED if self.shift else _PLAIN)[scancode]
        if self.ctrl and code:
            control = _control_code(code)
            if control is not None:
                self.buffer.push(control)
                return
        if self.caps_lock and not self.ctrl:
            code = _swap_case(code)
        if code:
            self.buffer.push(code)

    def _feed_extended(self, scancode: int) -> None:
        if scancode & _RELEASE_BIT:
            if scancode & 0x7F == _CTRL:
                self.ctrl = False
            return
        if scancode == _CTRL:
            self.ctrl = True
        elif scancode == _EXT_LEFT:
            self.buffer.push(SpecialKey.SHIFT_LEFT if self.shift else SpecialKey.LEFT)
        elif scancode == _EXT_RIGHT:
            self.buffer.push(SpecialKey.SHIFT_RIGHT if self.shift else SpecialKey.RIGHT)
        elif scancode in _EXTENDED_KEYS:
            self.buffer.push(_EXTENDED_KEYS[scancode])

    def has_char(self) -> bool:
        return len(self.buffer) > 0

    def get_char(self) -> int | None:
        """Take the next key code, or None when nothing is buffered."""
        return self.buffer.pop()