"""Pipes, a flat filesystem, PS/2 and USB HID input, RTC, timer, serial, terminal and xHCI definitions of a small kernel, without hardware."""

__version__ = "0.1.0"