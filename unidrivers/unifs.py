"""A flat filesystem: read-only files from a boot image plus writable files kept in memory.

Image layout: a header of an 8-byte magic and a little-endian 64-bit file count,
then one entry per file (64-byte NUL-terminated name, 64-bit offset, 64-bit size),
then the file contents.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum

MAGIC = b"UNIFS v1"
MAX_FILES = 64
MAX_FILENAME = 63
MAX_FILE_SIZE = 1024 * 1024

ELF_MAGIC = b"\x7fELF"

_HEADER = struct.Struct("<8sQ")
_ENTRY = struct.Struct("<64sQQ")
_TEXT_PROBE = 256


class UniFSError(Exception):
    """Base class for filesystem errors."""


class FileNotFoundInFS(UniFSError):
    """No file of that name exists."""


class FileExistsInFS(UniFSError):
    """A file of that name already exists."""


class FilesystemFull(UniFSError):
    """Every in-memory file slot is in use."""


class OutOfSpace(UniFSError):
    """The file would grow past the per-file size limit."""


class NameTooLong(UniFSError):
    """The file name does not fit in an entry."""


class ReadOnlyFile(UniFSError):
    """The file comes from the boot image and cannot be changed."""


class FileType(IntEnum):
    UNKNOWN = 0
    TEXT = 1
    BINARY = 2
    ELF = 3


@dataclass(frozen=True)
class UniFile:
    """A snapshot of one file's name and contents."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class _RamFile:
    name: str
    data: bytearray = field(default_factory=bytearray)


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8", "surrogateescape")
    if len(raw) > MAX_FILENAME:
        raise NameTooLong(f"file name longer than {MAX_FILENAME} bytes: {name!r}")
    return raw


def build_image(files: Mapping[str, bytes] | Iterable[tuple[str, bytes]]) -> bytes:
    """Lay out a boot image holding ``files`` in the given order."""
    items = list(files.items() if isinstance(files, Mapping) else files)
    names = [_encode_name(name) for name, _ in items]
    offset = _HEADER.size + _ENTRY.size * len(items)
    table = bytearray(_HEADER.pack(MAGIC, len(items)))
    blob = bytearray()
    for raw_name, (_, data) in zip(names, items):
        table += _ENTRY.pack(raw_name, offset + len(blob), len(data))
        blob += data
    return bytes(table + blob)


def _parse_image(image: bytes | None) -> list[UniFile] | None:
    if image is None or len(image) < _HEADER.size:
        return None
    magic, count = _HEADER.unpack_from(image)
    if magic != MAGIC:
        return None
    table_end = _HEADER.size + count * _ENTRY.size
    if table_end > len(image):
        raise UniFSError("entry table runs past the end of the image")
    files = []
    for raw_name, offset, size in _ENTRY.iter_unpack(image[_HEADER.size:table_end]):
        if offset + size > len(image):
            raise UniFSError("file data runs past the end of the image")
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        files.append(UniFile(name, bytes(image[offset:offset + size])))
    return files


def _looks_like_text(data: bytes) -> bool:
    return all(
        not (byte < 32 and byte not in b"\n\r\t") and not 126 < byte < 160
        for byte in data[:_TEXT_PROBE]
    )


class UniFS:
    """A mounted boot image (possibly absent) overlaid with in-memory files."""

    def __init__(self, image: bytes | None = None) -> None:
        parsed = _parse_image(image)
        self.mounted = parsed is not None
        self._boot: list[UniFile] = parsed or []
        self._slots: list[_RamFile | None] = [None] * MAX_FILES

    def _ram_files(self) -> list[_RamFile]:
        return [slot for slot in self._slots if slot is not None]

    def _find_ram(self, name: str) -> _RamFile | None:
        return next((f for f in self._ram_files() if f.name == name), None)

    def _find_boot(self, name: str) -> UniFile | None:
        return next((f for f in self._boot if f.name == name), None)

    def _is_boot_only(self, name: str) -> bool:
        return self._find_boot(name) is not None and self._find_ram(name) is None

    def _lookup(self, name: str) -> UniFile | None:
        ram = self._find_ram(name)
        if ram is not None:
            return UniFile(ram.name, bytes(ram.data))
        return self._find_boot(name)

    def _entry_at(self, index: int) -> UniFile:
        if index < 0:
            raise IndexError(index)
        if index < len(self._boot):
            return self._boot[index]
        ram = self._ram_files()
        ram_index = index - len(self._boot)
        if ram_index >= len(ram):
            raise IndexError(index)
        entry = ram[ram_index]
        return UniFile(entry.name, bytes(entry.data))

    def open(self, name: str) -> UniFile:
        """Return the named file; in-memory files take precedence over boot files."""
        found = self._lookup(name)
        if found is None:
            raise FileNotFoundInFS(name)
        return found

    def exists(self, name: str) -> bool:
        return self._lookup(name) is not None

    def file_size(self, name: str) -> int:
        """Size of the named file, or 0 if there is none."""
        found = self._lookup(name)
        return found.size if found else 0

    def file_type(self, name: str) -> FileType:
        """Classify a file by its contents."""
        found = self._lookup(name)
        if found is None:
            return FileType.UNKNOWN
        if found.data[:4] == ELF_MAGIC:
            return FileType.ELF
        if _looks_like_text(found.data):
            return FileType.TEXT
        return FileType.BINARY

    def file_count(self) -> int:
        return len(self._boot) + len(self._ram_files())

    def file_name(self, index: int) -> str:
        """Name of the file at ``index``: boot files first, then in-memory files."""
        return self._entry_at(index).name

    def file_size_by_index(self, index: int) -> int:
        return self._entry_at(index).size

    def create(self, name: str) -> None:
        """Create an empty in-memory file."""
        _encode_name(name)
        if self.exists(name):
            raise FileExistsInFS(name)
        for slot_index, slot in enumerate(self._slots):
            if slot is None:
                self._slots[slot_index] = _RamFile(name)
                return
        raise FilesystemFull(name)

    def _writable(self, name: str) -> _RamFile:
        if self._is_boot_only(name):
            raise ReadOnlyFile(name)
        ram = self._find_ram(name)
        if ram is None:
            self.create(name)
            ram = self._find_ram(name)
            assert ram is not None
        return ram

    def write(self, name: str, data: bytes) -> None:
        """Replace a file's contents, creating it if needed."""
        if len(data) > MAX_FILE_SIZE:
            raise OutOfSpace(name)
        self._writable(name).data = bytearray(data)

    def append(self, name: str, data: bytes) -> None:
        """Add ``data`` to the end of a file, creating it if needed."""
        if not data:
            raise ValueError("nothing to append")
        ram = self._writable(name)
        if len(ram.data) + len(data) > MAX_FILE_SIZE:
            raise OutOfSpace(name)
        ram.data += data

    def delete(self, name: str) -> None:
        """Remove an in-memory file."""
        if self._is_boot_only(name):
            raise ReadOnlyFile(name)
        for slot_index, slot in enumerate(self._slots):
            if slot is not None and slot.name == name:
                self._slots[slot_index] = None
                return
        raise FileNotFoundInFS(name)

    def total_size(self) -> int:
        return sum(f.size for f in self._boot) + sum(len(f.data) for f in self._ram_files())

    def used_size(self) -> int:
        return self.total_size()

    def free_slots(self) -> int:
        return MAX_FILES - len(self._ram_files())

    def boot_file_count(self) -> int:
        return len(self._boot)