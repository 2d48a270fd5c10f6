"""A text terminal drawn onto a grid of character cells, with a blinking cursor and output capture."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

COLOR_WHITE = 0xFFFFFFFF
COLOR_BLACK = 0x00000000
CURSOR_COLOR = 0xFFFFFFFF

# Pixel geometry of one character cell and of the screen margins.
CHAR_WIDTH = 9
CHAR_HEIGHT = 10
MARGIN_LEFT = 50
MARGIN_TOP = 50
MARGIN_BOTTOM = 30

BLINK_TICKS = 30


@dataclass
class Cell:
    """One character cell: glyph, glyph colour, background and the cursor underline colour."""

    char: str = " "
    fg: int = COLOR_BLACK
    bg: int = COLOR_BLACK
    underline: int = COLOR_BLACK


class TextCanvas:
    """A grid of character cells standing in for the framebuffer; drawing outside it is clipped."""

    def __init__(self, columns: int, rows: int, background: int = COLOR_BLACK) -> None:
        if columns < 0 or rows < 0:
            raise ValueError("canvas dimensions must not be negative")
        self.columns = columns
        self.rows = rows
        self.cells: list[list[Cell]] = []
        self.clear(background)

    def _blank_row(self, color: int) -> list[Cell]:
        return [Cell(bg=color, underline=color) for _ in range(self.columns)]

    def _inside(self, col: int, row: int) -> bool:
        return 0 <= col < self.columns and 0 <= row < self.rows

    def clear(self, color: int) -> None:
        """Blank every cell to ``color``."""
        self.cells = [self._blank_row(color) for _ in range(self.rows)]

    def draw_char(self, col: int, row: int, c: str, color: int) -> None:
        """Draw a glyph over a cell, leaving its background as it is."""
        if self._inside(col, row):
            cell = self.cells[row][col]
            cell.char = c
            cell.fg = color

    def fill_cells(self, col: int, row: int, count: int, color: int) -> None:
        """Blank ``count`` cells starting at (col, row), underline included."""
        if not 0 <= row < self.rows:
            return
        for x in range(max(col, 0), min(col + count, self.columns)):
            self.cells[row][x] = Cell(bg=color, underline=color)

    def scroll_up(self, color: int) -> None:
        """Move every row up by one and blank the bottom row."""
        if not self.rows:
            return
        del self.cells[0]
        self.cells.append(self._blank_row(color))

    def row_text(self, row: int) -> str:
        """The characters of one row, without trailing blanks."""
        return "".join(cell.char for cell in self.cells[row]).rstrip()


class Terminal:
    """A scrolling text console on a :class:`TextCanvas`.

    ``clock`` returns the current timer tick; it drives cursor blinking.
    """

    def __init__(
        self,
        canvas: TextCanvas,
        fg: int = COLOR_WHITE,
        bg: int = COLOR_BLACK,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.canvas = canvas
        self.width_chars = canvas.columns
        self.height_chars = canvas.rows
        self.fg_color = fg
        self.bg_color = bg
        self._clock = clock if clock is not None else (lambda: 0)
        self.cursor_col = 0
        self.cursor_row = 0
        self.cursor_visible = True
        self.cursor_state = True
        self.last_blink_tick = 0
        self._capture: list[str] | None = None
        self._capture_max = 0
        self.clear()

    @property
    def cursor(self) -> tuple[int, int]:
        """The cursor position as (column, row)."""
        return self.cursor_col, self.cursor_row

    @property
    def is_capturing(self) -> bool:
        return self._capture is not None

    def put_char(self, c: str) -> None:
        """Output one character; ``\\n`` and ``\\b`` are honoured, other control characters ignored."""
        if self._capture is not None:
            if len(self._capture) < self._capture_max:
                self._capture.append(c)
            return

        if self.cursor_visible:
            self._draw_cursor(False)

        code = ord(c)
        if c == "\n":
            self._new_line()
        elif c == "\b":
            if self.cursor_col > 0:
                self.cursor_col -= 1
                self.canvas.fill_cells(self.cursor_col, self.cursor_row, 1, self.bg_color)
        elif 32 <= code < 128:
            self.canvas.draw_char(self.cursor_col, self.cursor_row, c, self.fg_color)
            self.cursor_col += 1
            if self.cursor_col >= self.width_chars:
                self._new_line()

        if self.cursor_visible:
            self._draw_cursor(True)
            self.cursor_state = True
            self.last_blink_tick = self._clock()

    def write(self, text: str) -> None:
        for c in text:
            self.put_char(c)

    def write_line(self, text: str) -> None:
        self.write(text)
        self.put_char("\n")

    def clear(self) -> None:
        """Blank the screen and home the cursor."""
        self.canvas.clear(self.bg_color)
        self.cursor_col = 0
        self.cursor_row = 0

    def set_color(self, fg: int, bg: int) -> None:
        self.fg_color = fg
        self.bg_color = bg

    def set_cursor_pos(self, col: int, row: int) -> None:
        """Move the cursor, clamped to the grid."""
        if self.cursor_visible:
            self._draw_cursor(False)
        self.cursor_col = col
        self.cursor_row = row
        if self.cursor_col < 0:
            self.cursor_col = 0
        if self.cursor_col >= self.width_chars:
            self.cursor_col = self.width_chars - 1
        if self.cursor_row < 0:
            self.cursor_row = 0
        if self.cursor_row >= self.height_chars:
            self.cursor_row = self.height_chars - 1
        if self.cursor_visible:
            self._draw_cursor(True)

    def set_cursor_visible(self, visible: bool) -> None:
        self.cursor_visible = visible
        if visible:
            self.cursor_state = True
            self.last_blink_tick = self._clock()
            self._draw_cursor(True)
        else:
            self._draw_cursor(False)

    def update_cursor(self, now: int) -> None:
        """Toggle the cursor once more than ``BLINK_TICKS`` ticks have passed since the last change."""
        if not self.cursor_visible:
            return
        if now - self.last_blink_tick > BLINK_TICKS:
            self.last_blink_tick = now
            self.cursor_state = not self.cursor_state
            self._draw_cursor(self.cursor_state)

    def clear_chars(self, col: int, row: int, count: int) -> None:
        """Blank cells without touching the cursor state."""
        self.canvas.fill_cells(col, row, count, self.bg_color)

    def write_char_at(self, col: int, row: int, c: str) -> None:
        """Draw a character in the current colour without moving the cursor."""
        self.canvas.draw_char(col, row, c, self.fg_color)

    def write_char_at_color(self, col: int, row: int, c: str, fg: int, bg: int) -> None:
        """Draw a character on its own background, as used for selection highlighting."""
        self.canvas.fill_cells(col, row, 1, bg)
        self.canvas.draw_char(col, row, c, fg)

    def start_capture(self, max_len: int) -> None:
        """Divert output into a buffer of at most ``max_len`` characters."""
        if max_len < 0:
            raise ValueError("max_len must not be negative")
        self._capture = []
        self._capture_max = max_len

    def stop_capture(self) -> str:
        """End capturing and return what was captured."""
        captured = "".join(self._capture or ())
        self._capture = None
        self._capture_max = 0
        return captured

    def _new_line(self) -> None:
        self.cursor_col = 0
        self.cursor_row += 1
        if self.cursor_row >= self.height_chars:
            self.canvas.scroll_up(self.bg_color)
            self.cursor_row = self.height_chars - 1

    def _draw_cursor(self, visible: bool) -> None:
        if not self.cursor_visible:
            return
        col, row = self.cursor_col, self.cursor_row
        if 0 <= col < self.canvas.columns and 0 <= row < self.canvas.rows:
            self.canvas.cells[row][col].underline = CURSOR_COLOR if visible else self.bg_color