# unidrivers

The logic behind a small hobby kernel's drivers and filesystem, as plain
Python objects that need no hardware. You feed them bytes, scancodes,
register values or reports, and they hold the state the kernel would
compute from them.

## Modules

- `unidrivers.pipe`: `PipeTable` hands out up to 8 `Pipe` objects by small
  integer id. Each pipe buffers at most 512 bytes and has separately closable
  read and write ends; a slot is freed once both ends are closed. Invalid ids,
  a full table and writes to a pipe whose read end is closed raise `PipeError`.
- `unidrivers.unifs`: `UniFS`, a flat filesystem.
  - Read-only boot files come from an image; `build_image` lays one out.
  - Up to 64 in-memory files can be created, written, appended to and deleted;
    they shadow boot files of the same name.
  - `file_type` classifies contents as `FileType.ELF`, `TEXT` or `BINARY`.
  - Failures raise subclasses of `UniFSError`: `FileNotFoundInFS`,
    `FileExistsInFS`, `FilesystemFull`, `OutOfSpace`, `NameTooLong`,
    `ReadOnlyFile`.
- `unidrivers.keyboard`: `PS2Keyboard` decodes scancode set 1 (US layout),
  tracking Shift, Ctrl and Caps Lock. Ctrl+letter gives control codes,
  extended keys come out as `SpecialKey` codes, and everything is queued in a
  `KeyBuffer`.
- `unidrivers.mouse`: `PS2Mouse` assembles 3-byte packets into a
  `MouseState`, clamped to the screen when a size is given.
- `unidrivers.timer`: `Timer` counts ticks; `ticks_for`, `deadline` and
  `expired` turn milliseconds into ticks and check when a wait ends.
- `unidrivers.rtc`: `bcd_to_binary`, `decode_registers` and `RTC` turn CMOS
  register values into an `RTCTime`. `RTC` reads registers through a callable
  you supply and measures uptime against a `Timer`.
- `unidrivers.serial`: `format_printf`, a small printf supporting
  `%s %d %i %u %x %X %p %c %%` with output cut at 255 characters;
  `divisor_for`; and `SerialPort`, which collects sent bytes in `sent` or
  passes them to a `transmit` callable, adding `\r` before each `\n`.
- `unidrivers.terminal`: `Terminal` writes onto a `TextCanvas` grid of cells,
  with line wrapping, scrolling, a blinking cursor (`update_cursor(now)`) and
  output capture (`start_capture` / `stop_capture`).
- `unidrivers.xhci_defs`: xHCI constants, the `TrbType`, `CompletionCode` and
  `PortSpeed` enums, the 16-byte `Trb` record with `make`/`pack`/`unpack`, and
  decoders `parse_hcsparams1`, `scratchpad_count`, `context_size`,
  `extended_caps_offset` and `decode_portsc`.
- `unidrivers.usb`: descriptor parsing (`DeviceDescriptor`,
  `ConfigDescriptor`, `InterfaceDescriptor`, `EndpointDescriptor`),
  `iter_descriptors`, HID keyboard/mouse detection with `parse_config`,
  `setup_packet`, and `UsbRegistry`, whose `enumerate` drives a host-controller
  object you provide. Failures raise `UsbError`.
- `unidrivers.usb_hid`: `KeyboardReport` and `MouseReport` parsing,
  `poll_interval_ticks`, `HidKeyboard` (new-key detection and timed key repeat)
  and `HidMouse` (clamped position, buttons, accumulated wheel).

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Using a pipe:

```python
from unidrivers.pipe import PipeTable

pipes = PipeTable()
pipe_id = pipes.create()
pipes.write(pipe_id, b"hello")
assert pipes.read(pipe_id, 16) == b"hello"
```

Working with the filesystem:

```python
from unidrivers.unifs import UniFS, build_image, FileType

fs = UniFS(build_image({"motd.txt": b"welcome\n"}))
fs.write("notes.txt", b"draft")
fs.append("notes.txt", b" two")
assert fs.open("notes.txt").data == b"draft two"
assert fs.file_type("motd.txt") is FileType.TEXT
```

Feeding scancodes to the keyboard:

```python
from unidrivers.keyboard import PS2Keyboard

kbd = PS2Keyboard()
for code in (0x2A, 0x1E, 0xAA):  # Shift down, 'a', Shift up
    kbd.feed(code)
assert kbd.get_char() == ord("A")
```

Formatting serial output:

```python
from unidrivers.serial import format_printf

assert format_printf("%d items at %x", 3, 255) == "3 items at ff"
```

## What it does not do

- It performs no port or memory-mapped I/O and talks to no real device.
  Input arrives only through the methods you call.
- There is no xHCI controller driver. `UsbRegistry.enumerate` needs a
  controller object supplied by the caller, and `xhci_defs` only describes
  register and TRB layouts.
- `Terminal` draws into an in-memory `TextCanvas`, not onto a screen.
- `UniFS` files live in memory only and are not saved anywhere.
- There is no command-line program.