[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "unidrivers"
version = "0.1.0"
description = "Device-protocol logic of a small hobby kernel: PS/2 input, RTC, serial formatting, text terminal, pipes, a flat filesystem and USB/xHCI descriptor handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "ps2", "usb", "hid", "xhci", "filesystem", "terminal", "rtc", "pipe"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["unidrivers"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
