import pytest

from unidrivers.serial import SerialPort, divisor_for, format_printf


@pytest.mark.parametrize("n", [0, 7, -42, 123456, -(2**31)])
def test_signed_decimal(n):
    assert format_printf("%d", n) == str(n)
    assert format_printf("%i", n) == str(n)


def test_signed_wraps_to_32_bits():
    assert format_printf("%d", 2**31) == str(-(2**31))


def test_unsigned_wraps():
    assert format_printf("%u", -1) == str(0xFFFFFFFF)
    assert format_printf("%u", 42) == "42"


@pytest.mark.parametrize("n", [0, 1, 255, 0xDEADBEEF])
def test_hex(n):
    assert format_printf("%x", n) == format(n, "x")
    assert format_printf("%X", n) == format(n, "X")


@pytest.mark.parametrize("n", [0, 0xDEAD, 0xFFFF_FFFF_FFFF])
def test_pointer(n):
    assert format_printf("%p", n) == hex(n)


def test_string_and_null():
    assert format_printf("[%s]", "abc") == "[abc]"
    assert format_printf("%s", None) == "(null)"


def test_char_from_int_and_str():
    assert format_printf("%c%c", 65, "z") == "Az"


def test_percent_and_unknown_spec():
    assert format_printf("100%%") == "100%"
    assert format_printf("%q") == "%q"
    assert format_printf("end%") == "end%"


def test_mixed():
    assert format_printf("%s=%d (%x)", "v", 10, 10) == "v=10 (a)"


def test_output_capped():
    assert len(format_printf("x" * 400)) == 255
    assert format_printf("%s", "y" * 400) == "y" * 255


def test_missing_argument():
    with pytest.raises(TypeError):
        format_printf("%d %d", 1)


def test_divisor():
    assert divisor_for(115200) == 1
    assert divisor_for(9600) == 12


def test_divisor_rejects_zero():
    with pytest.raises(ValueError):
        divisor_for(0)


def test_puts_inserts_carriage_return():
    port = SerialPort()
    port.puts("a\nb")
    assert bytes(port.sent) == b"a\r\nb"


def test_printf_sends_formatted_text():
    port = SerialPort()
    port.printf("n=%d\n", 5)
    assert bytes(port.sent) == format_printf("n=%d", 5).encode() + b"\r\n"


def test_custom_transmit():
    received = []
    port = SerialPort(transmit=received.append)
    port.puts("hi")
    assert received == list(b"hi")
    assert port.sent == bytearray()


def test_absent_port_discards_output():
    port = SerialPort(present=False)
    port.puts("hello\n")
    assert port.sent == bytearray()


def test_putc_rejects_wide_character():
    with pytest.raises(ValueError):
        SerialPort().putc("\u20ac")