"""
Gzip artifact written to a temporary file.

Rows are streamed into a single gzip member as the encoder produces them, so a
flush never holds the whole encoded chunk in memory. The artifact counts the
uncompressed bytes it receives; zero bytes means there is nothing to ship.
"""

import gzip
import os
import tempfile
from pathlib import Path
from typing import Optional, Union


class GzipArtifact:
    """
    Writable gzip stream backed by a named temporary file.

    Use as a context manager; the temporary file is removed on exit::

        with GzipArtifact() as artifact:
            artifact.write(b"row\\n")
            artifact.finish()
            upload(artifact.path)
    """

    def __init__(
        self,
        prefix: str = "s3-",
        directory: Optional[Union[str, Path]] = None,
        compresslevel: int = 9,
    ):
        handle = tempfile.NamedTemporaryFile(
            prefix=prefix, suffix=".gz", dir=directory, delete=False
        )
        self.path = Path(handle.name)
        self._raw = handle
        self._gzip: Optional[gzip.GzipFile] = gzip.GzipFile(
            filename="", mode="wb", fileobj=handle, compresslevel=compresslevel
        )
        self.bytes_written = 0

    def write(self, data: Union[bytes, str]) -> int:
        if self._gzip is None:
            raise ValueError("write to a finished gzip artifact")
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not data:
            return 0
        self._gzip.write(data)
        self.bytes_written += len(data)
        return len(data)

    @property
    def is_empty(self) -> bool:
        return self.bytes_written == 0

    def finish(self) -> Path:
        """Flush the gzip trailer and close the file so it can be uploaded."""
        if self._gzip is not None:
            self._gzip.close()
            self._gzip = None
        if not self._raw.closed:
            self._raw.close()
        return self.path

    def cleanup(self) -> None:
        self.finish()
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass

    def __enter__(self) -> "GzipArtifact":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
