"""Fixed-capacity in-memory pipes and the table that hands them out."""

from __future__ import annotations

PIPE_BUFFER_SIZE = 512
MAX_PIPES = 8


class PipeError(Exception):
    """Raised for invalid pipe ids, a full table, or writes to a pipe nobody reads."""


class Pipe:
    """A byte FIFO holding at most ``PIPE_BUFFER_SIZE`` bytes, with separately closable ends."""

    def __init__(self, capacity: int = PIPE_BUFFER_SIZE) -> None:
        self._capacity = capacity
        self._buffer = bytearray()
        self.read_closed = False
        self.write_closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        """True once both ends have been closed."""
        return self.read_closed and self.write_closed

    def read(self, count: int) -> bytes:
        """Take up to ``count`` buffered bytes; ``b""`` at end of file or when nothing is buffered."""
        if count < 0:
            raise ValueError("count must not be negative")
        data = bytes(self._buffer[:count])
        del self._buffer[:count]
        return data

    def write(self, data: bytes) -> int:
        """Buffer as much of ``data`` as fits and return how many bytes were taken."""
        if self.read_closed:
            raise PipeError("read end of pipe is closed")
        space = self._capacity - len(self._buffer)
        chunk = bytes(data[:space])
        self._buffer.extend(chunk)
        return len(chunk)

    def close_read(self) -> None:
        self.read_closed = True

    def close_write(self) -> None:
        self.write_closed = True


class PipeTable:
    """A fixed set of pipe slots addressed by small integer ids."""

    def __init__(self, size: int = MAX_PIPES) -> None:
        self._slots: list[Pipe | None] = [None] * size

    def __len__(self) -> int:
        return sum(pipe is not None for pipe in self._slots)

    def create(self) -> int:
        """Open a new pipe in the first free slot and return its id."""
        for pipe_id, slot in enumerate(self._slots):
            if slot is None:
                self._slots[pipe_id] = Pipe()
                return pipe_id
        raise PipeError("no free pipe slots")

    def get(self, pipe_id: int) -> Pipe:
        """Return the open pipe with this id."""
        pipe = self._lookup(pipe_id)
        if pipe is None:
            raise PipeError(f"invalid pipe id {pipe_id}")
        return pipe

    def read(self, pipe_id: int, count: int) -> bytes:
        return self.get(pipe_id).read(count)

    def write(self, pipe_id: int, data: bytes) -> int:
        return self.get(pipe_id).write(data)

    def close_read(self, pipe_id: int) -> None:
        """Close the read end; the slot is freed once both ends are closed."""
        pipe = self._lookup(pipe_id)
        if pipe is not None:
            pipe.close_read()
            self._release_if_closed(pipe_id, pipe)

    def close_write(self, pipe_id: int) -> None:
        """Close the write end; the slot is freed once both ends are closed."""
        pipe = self._lookup(pipe_id)
        if pipe is not None:
            pipe.close_write()
            self._release_if_closed(pipe_id, pipe)

    def _lookup(self, pipe_id: int) -> Pipe | None:
        if not 0 <= pipe_id < len(self._slots):
            return None
        return self._slots[pipe_id]

    def _release_if_closed(self, pipe_id: int, pipe: Pipe) -> None:
        if pipe.closed:
            self._slots[pipe_id] = None