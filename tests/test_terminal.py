import pytest

from unidrivers.terminal import (
    BLINK_TICKS,
    COLOR_BLACK,
    CURSOR_COLOR,
    TextCanvas,
    Terminal,
)

RED = 0xFFFF0000
BLUE = 0xFF0000FF


def make_terminal(columns=10, rows=3, clock=None):
    canvas = TextCanvas(columns, rows)
    return canvas, Terminal(canvas, clock=clock)


def test_write_places_text_and_advances_cursor():
    canvas, term = make_terminal()
    term.write("hi")
    assert canvas.row_text(0) == "hi"
    assert term.cursor == (2, 0)


def test_write_line_moves_to_next_row():
    canvas, term = make_terminal()
    term.write_line("abc")
    term.write("d")
    assert canvas.row_text(0) == "abc"
    assert canvas.row_text(1) == "d"
    assert term.cursor == (1, 1)


def test_long_line_wraps():
    canvas, term = make_terminal(columns=4)
    term.write("abcdef")
    assert canvas.row_text(0) == "abcd"
    assert canvas.row_text(1) == "ef"


def test_scrolls_when_bottom_reached():
    canvas, term = make_terminal(columns=5, rows=2)
    term.write("a\nb\nc")
    assert canvas.row_text(0) == "b"
    assert canvas.row_text(1) == "c"
    assert term.cursor == (1, 1)


def test_backspace_erases_previous_character():
    canvas, term = make_terminal()
    term.write("ab\b")
    assert canvas.row_text(0) == "a"
    assert term.cursor == (1, 0)


def test_backspace_at_line_start_does_nothing():
    canvas, term = make_terminal()
    term.write("\b")
    assert term.cursor == (0, 0)


def test_control_and_non_ascii_characters_are_ignored():
    canvas, term = make_terminal()
    term.write("a\tb\u00e9c")
    assert canvas.row_text(0) == "abc"


def test_capture_diverts_output_and_truncates():
    canvas, term = make_terminal()
    term.start_capture(3)
    assert term.is_capturing
    term.write("hello")
    assert term.stop_capture() == "hel"
    assert not term.is_capturing
    assert canvas.row_text(0) == ""


def test_output_after_capture_goes_to_screen():
    canvas, term = make_terminal()
    term.start_capture(10)
    term.write("x")
    term.stop_capture()
    term.write("y")
    assert canvas.row_text(0) == "y"


def test_set_cursor_pos_clamps_to_grid():
    _, term = make_terminal(columns=10, rows=3)
    term.set_cursor_pos(50, 50)
    assert term.cursor == (9, 2)
    term.set_cursor_pos(-4, -1)
    assert term.cursor == (0, 0)


def test_cursor_underline_follows_output():
    canvas, term = make_terminal()
    term.write("a")
    assert canvas.cells[0][1].underline == CURSOR_COLOR
    assert canvas.cells[0][0].underline == COLOR_BLACK


def test_cursor_blinks_after_interval():
    canvas, term = make_terminal(clock=lambda: 0)
    term.write("a")
    term.update_cursor(BLINK_TICKS)
    assert term.cursor_state is True
    term.update_cursor(BLINK_TICKS + 1)
    assert term.cursor_state is False
    assert canvas.cells[0][1].underline == COLOR_BLACK
    assert term.last_blink_tick == BLINK_TICKS + 1


def test_hidden_cursor_does_not_blink():
    _, term = make_terminal()
    term.set_cursor_visible(False)
    term.update_cursor(1000)
    assert term.cursor_state is True


def test_set_cursor_visible_records_clock():
    _, term = make_terminal(clock=lambda: 77)
    term.set_cursor_visible(True)
    assert term.last_blink_tick == 77


def test_write_char_at_color_sets_background():
    canvas, term = make_terminal()
    term.write_char_at_color(3, 1, "z", RED, BLUE)
    cell = canvas.cells[1][3]
    assert (cell.char, cell.fg, cell.bg) == ("z", RED, BLUE)
    assert term.cursor == (0, 0)


def test_write_char_at_uses_current_colour():
    canvas, term = make_terminal()
    term.set_color(RED, COLOR_BLACK)
    term.write_char_at(2, 2, "q")
    assert canvas.cells[2][2].fg == RED
    assert canvas.row_text(2) == "  q"


def test_clear_chars_blanks_cells():
    canvas, term = make_terminal()
    term.write("hello")
    term.clear_chars(1, 0, 3)
    assert canvas.row_text(0) == "h   o"


def test_clear_resets_screen_and_cursor():
    canvas, term = make_terminal()
    term.write("abc\nd")
    term.clear()
    assert canvas.row_text(0) == ""
    assert canvas.row_text(1) == ""
    assert term.cursor == (0, 0)


def test_canvas_fill_is_clipped():
    canvas = TextCanvas(3, 1)
    canvas.draw_char(0, 0, "a", RED)
    canvas.fill_cells(-2, 0, 10, BLUE)
    assert all(cell.bg == BLUE for cell in canvas.cells[0])
    assert canvas.row_text(0) == ""


def test_canvas_scroll_up_blanks_bottom_row():
    canvas = TextCanvas(2, 2)
    canvas.draw_char(0, 1, "x", RED)
    canvas.scroll_up(BLUE)
    assert canvas.row_text(0) == "x"
    assert canvas.cells[1][0].bg == BLUE


def test_canvas_rejects_negative_size():
    with pytest.raises(ValueError):
        TextCanvas(-1, 2)


def test_negative_capture_limit_rejected():
    _, term = make_terminal()
    with pytest.raises(ValueError):
        term.start_capture(-1)