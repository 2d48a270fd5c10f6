import pytest

from unidrivers.keyboard import KeyBuffer, PS2Keyboard, SpecialKey

KEY_A = 0x1E
KEY_Q = 0x10
KEY_1 = 0x02
LSHIFT = 0x2A
RSHIFT = 0x36
CTRL = 0x1D
CAPS = 0x3A
EXT = 0xE0
RELEASE = 0x80
LBRACKET = 0x1A
F1 = 0x3B


def typed(kb):
    out = []
    while kb.has_char():
        out.append(kb.get_char())
    return out


def run(*codes):
    kb = PS2Keyboard()
    for code in codes:
        kb.feed(code)
    return typed(kb)


def test_plain_letter():
    assert run(KEY_A) == [ord("a")]


def test_shift_digit():
    assert run(LSHIFT, KEY_1) == [ord("!")]


@pytest.mark.parametrize("shift", [LSHIFT, RSHIFT])
@pytest.mark.parametrize("key", [KEY_A, KEY_Q])
def test_shift_uppercases_letters(shift, key):
    plain = run(key)
    assert run(shift, key) == [ord(chr(plain[0]).upper())]


def test_release_produces_nothing():
    kb = PS2Keyboard()
    kb.feed(KEY_A | RELEASE)
    assert not kb.has_char()
    assert kb.get_char() is None


def test_shift_release_restores_plain():
    assert run(LSHIFT, LSHIFT | RELEASE, KEY_Q) == run(KEY_Q)


def test_caps_lock_matches_shift_for_letters():
    assert run(CAPS, KEY_Q) == run(LSHIFT, KEY_Q)


def test_caps_lock_does_not_affect_digits():
    assert run(CAPS, KEY_1) == run(KEY_1)


def test_caps_lock_with_shift_gives_plain():
    assert run(CAPS, LSHIFT, KEY_A) == run(KEY_A)


def test_caps_lock_toggles_back():
    assert run(CAPS, CAPS, KEY_A) == run(KEY_A)


def test_ctrl_letter_gives_control_code():
    assert run(CTRL, KEY_A) == [1]


def test_ctrl_shift_letter_same_as_ctrl():
    assert run(CTRL, LSHIFT, KEY_Q) == run(CTRL, KEY_Q)


def test_ctrl_bracket_is_escape():
    assert run(CTRL, LBRACKET) == [27]


def test_ctrl_ignores_caps_lock():
    assert run(CAPS, CTRL, KEY_A) == run(CTRL, KEY_A)


def test_ctrl_release_restores_plain():
    assert run(CTRL, CTRL | RELEASE, KEY_A) == run(KEY_A)


def test_right_ctrl_extended():
    assert run(EXT, CTRL, KEY_A) == run(CTRL, KEY_A)
    assert run(EXT, CTRL, EXT, CTRL | RELEASE, KEY_A) == run(KEY_A)


@pytest.mark.parametrize(
    "scancode, key",
    [
        (0x48, SpecialKey.UP),
        (0x50, SpecialKey.DOWN),
        (0x4B, SpecialKey.LEFT),
        (0x4D, SpecialKey.RIGHT),
        (0x47, SpecialKey.HOME),
        (0x4F, SpecialKey.END),
        (0x53, SpecialKey.DELETE),
    ],
)
def test_extended_keys(scancode, key):
    assert run(EXT, scancode) == [key]


@pytest.mark.parametrize(
    "scancode, key", [(0x4B, SpecialKey.SHIFT_LEFT), (0x4D, SpecialKey.SHIFT_RIGHT)]
)
def test_shift_arrows(scancode, key):
    assert run(LSHIFT, EXT, scancode) == [key]


def test_extended_release_ignored():
    assert run(EXT, 0x48 | RELEASE) == []


def test_unknown_extended_key_consumes_prefix():
    assert run(EXT, KEY_Q, KEY_Q) == run(KEY_Q)


def test_unmapped_key_produces_nothing():
    assert run(F1) == []


def test_order_is_preserved():
    assert run(KEY_Q, KEY_A) == run(KEY_Q) + run(KEY_A)


def test_key_buffer_drops_when_full():
    buf = KeyBuffer()
    results = [buf.push(code) for code in range(buf.capacity + 10)]
    assert len(buf) == buf.capacity
    assert all(results[: buf.capacity])
    assert not any(results[buf.capacity:])
    assert [buf.pop() for _ in range(buf.capacity)] == list(range(buf.capacity))
    assert buf.pop() is None


def test_keyboard_buffer_limit():
    kb = PS2Keyboard()
    for _ in range(kb.buffer.capacity + 5):
        kb.feed(KEY_A)
    assert len(typed(kb)) == kb.buffer.capacity