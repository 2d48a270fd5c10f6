"""UART serial output and its small printf-style formatter."""

from __future__ import annotations

from collections.abc import Callable

COM1_PORT = 0x3F8
COM2_PORT = 0x2F8
COM3_PORT = 0x3E8
COM4_PORT = 0x2E8

BASE_BAUD = 115200
_FORMAT_LIMIT = 255


def _int32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def format_printf(fmt: str, *args) -> str:
    """Format with %s %d %i %u %x %X %p %c %%; output is cut at 255 characters."""
    values = iter(args)
    out: list[str] = []

    def next_arg(spec: str):
        try:
            return next(values)
        except StopIteration:
            raise TypeError(f"not enough arguments for %{spec}") from None

    def put(text: str) -> None:
        out.extend(text[: max(_FORMAT_LIMIT - len(out), 0)])

    chars = iter(fmt)
    for ch in chars:
        if len(out) >= _FORMAT_LIMIT:
            break
        if ch != "%":
            out.append(ch)
            continue
        spec = next(chars, None)
        if spec is None:
            out.append("%")
            break
        if spec == "s":
            text = next_arg(spec)
            put("(null)" if text is None else str(text))
        elif spec in "di":
            number = _int32(int(next_arg(spec)))
            if number < 0:
                out.append("-")
                number = -number
            put(str(number))
        elif spec == "u":
            put(str(int(next_arg(spec)) & 0xFFFFFFFF))
        elif spec in "xX":
            put(format(int(next_arg(spec)) & 0xFFFFFFFF, spec))
        elif spec == "p":
            out.extend("0x")
            put(format(int(next_arg(spec)) & 0xFFFFFFFFFFFFFFFF, "x"))
        elif spec == "c":
            value = next_arg(spec)
            out.append(value if isinstance(value, str) and len(value) == 1 else chr(int(value) & 0xFF))
        elif spec == "%":
            out.append("%")
        else:
            out.extend(("%", spec))
    return "".join(out)[:_FORMAT_LIMIT]


def divisor_for(baud: int) -> int:
    """The 16-bit divisor latch value for ``baud``."""
    if baud <= 0:
        raise ValueError("baud rate must be positive")
    return (BASE_BAUD // baud) & 0xFFFF


class SerialPort:
    """A UART transmitter; bytes go to ``transmit`` or, by default, to ``sent``.

    ``present=False`` stands for a port that failed its loopback self-test:
    all output is then discarded.
    """

    def __init__(
        self,
        port: int = COM1_PORT,
        baud: int = BASE_BAUD,
        transmit: Callable[[int], object] | None = None,
        present: bool = True,
    ) -> None:
        self.port = port
        self.divisor = divisor_for(baud)
        self.initialized = present
        self.sent = bytearray()
        self._transmit = transmit if transmit is not None else self.sent.append

    def putc(self, c: str | int) -> None:
        if not self.initialized:
            return
        code = ord(c) if isinstance(c, str) else c
        if not 0 <= code <= 0xFF:
            raise ValueError(f"not a single byte: {c!r}")
        self._transmit(code)

    def puts(self, text: str) -> None:
        """Send ``text``, putting a carriage return before each line feed."""
        for ch in text:
            if ch == "\n":
                self.putc("\r")
            self.putc(ch)

    def printf(self, fmt: str, *args) -> None:
        self.puts(format_printf(fmt, *args))