"""PS/2 mouse: assembling three-byte packets into a pointer state."""

from __future__ import annotations

from dataclasses import dataclass

_ALWAYS_SET = 0x08
_X_SIGN = 0x10
_Y_SIGN = 0x20


@dataclass
class MouseState:
    x: int = 0
    y: int = 0
    left_button: bool = False
    right_button: bool = False
    middle_button: bool = False


def _signed8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


class PS2Mouse:
    """Decodes the mouse byte stream; position is clamped to the screen when one is given."""

    def __init__(self, width: int | None = None, height: int | None = None) -> None:
        self.width = width
        self.height = height
        self.state = MouseState()
        if width is not None and height is not None:
            self.state.x = width // 2
            self.state.y = height // 2
        self._packet: list[int] = []

    def feed(self, byte: int) -> bool:
        """Process one byte; return True when it completed a packet."""
        byte &= 0xFF
        if not self._packet:
            if byte & _ALWAYS_SET:
                self._packet.append(byte)
            return False
        self._packet.append(byte)
        if len(self._packet) < 3:
            return False
        flags, raw_x, raw_y = self._packet
        self._packet = []
        self._apply(flags, raw_x, raw_y)
        return True

    def _apply(self, flags: int, raw_x: int, raw_y: int) -> None:
        state = self.state
        state.left_button = bool(flags & 0x01)
        state.right_button = bool(flags & 0x02)
        state.middle_button = bool(flags & 0x04)

        dx = _signed8(raw_x)
        dy = _signed8(raw_y)
        if flags & _X_SIGN:
            dx = raw_x - 0x100
        if flags & _Y_SIGN:
            dy = raw_y - 0x100

        state.x += dx
        state.y -= dy  # screen y grows downwards

        if self.width is not None and self.height is not None:
            state.x = min(max(state.x, 0), self.width - 1)
            state.y = min(max(state.y, 0), self.height - 1)