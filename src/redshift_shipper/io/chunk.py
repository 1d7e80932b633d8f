"""
Chunk of buffered records handed to an output instance on flush.

The buffering host owns chunks; an output only reads them. ``BufferChunk`` is
the in-memory implementation used by the CLI host and the tests. Any object
that provides the ``Chunk`` protocol can be flushed.
"""

from typing import BinaryIO, Iterable, Iterator, List, Protocol


class Chunk(Protocol):
    """Read-only view of a sealed chunk."""

    def __len__(self) -> int: ...

    def is_empty(self) -> bool: ...

    def write_to(self, fileobj: BinaryIO) -> int: ...

    def iter_lines(self) -> Iterator[bytes]: ...


class BufferChunk:
    """Append-only list of formatted records (bytes produced by ``format()``)."""

    def __init__(self, entries: Iterable[bytes] = ()):
        self._entries: List[bytes] = []
        for entry in entries:
            self.append(entry)

    def append(self, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"chunk entries must be bytes, got {type(data).__name__}")
        self._entries.append(bytes(data))

    def __len__(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    @property
    def bytesize(self) -> int:
        return sum(len(entry) for entry in self._entries)

    def write_to(self, fileobj: BinaryIO) -> int:
        """Write the buffered bytes unchanged; returns the number of bytes written."""
        written = 0
        for entry in self._entries:
            fileobj.write(entry)
            written += len(entry)
        return written

    def iter_lines(self) -> Iterator[bytes]:
        """Non-blank buffered lines, undecoded."""
        for entry in self._entries:
            for line in entry.splitlines():
                if line.strip():
                    yield line

