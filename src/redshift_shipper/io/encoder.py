"""
Chunk encoders.

Two interchangeable strategies write a chunk into a byte sink:

- ``RowEncoder`` (file_type ``json``): every record carries a JSON payload under
  the configured log field. The payload is decoded and projected onto the
  table's column order, then written as one quoted, delimited row per record.
- ``PassthroughEncoder`` (``tsv``/``csv``): the buffered bytes already hold
  delimited rows and are copied through unchanged.

Bad records never abort a chunk: they are logged with a payload snippet and
skipped.
"""

import csv
import io
import json
from dataclasses import dataclass
from typing import Any, BinaryIO, List, Mapping, Optional, Protocol, Sequence

from redshift_shipper.io.chunk import Chunk
from redshift_shipper.utils.logging import get_logger

structured_logger = get_logger(__name__)

SNIPPET_LENGTH = 200


class PayloadDecodeError(ValueError):
    """Raised when a log payload is not a JSON object."""


@dataclass
class EncodeStats:
    """Outcome of encoding one chunk."""

    rows: int = 0
    skipped: int = 0
    bytes_written: int = 0


class ChunkEncoder(Protocol):
    def encode(self, chunk: Chunk, sink: BinaryIO) -> EncodeStats: ...


def _snippet(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    text = value if isinstance(value, str) else repr(value)
    if len(text) > SNIPPET_LENGTH:
        return text[:SNIPPET_LENGTH] + "..."
    return text


class Payload:
    """Decoded log payload with explicit lookups; absent fields return None."""

    def __init__(self, fields: Mapping[str, Any]):
        self._fields = fields

    @classmethod
    def decode(cls, raw: Any) -> "Payload":
        """
        Decode a raw payload (JSON text, bytes or an already decoded mapping).

        Raises:
            PayloadDecodeError: If the payload is not valid JSON or not an object
        """
        if isinstance(raw, Mapping):
            return cls(raw)
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            raise PayloadDecodeError(f"unsupported payload type {type(raw).__name__}")
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PayloadDecodeError(f"failed to parse json: {e}") from e
        if not isinstance(decoded, dict):
            raise PayloadDecodeError(
                f"payload must be a json object, got {type(decoded).__name__}"
            )
        return cls(decoded)

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def get_text(self, name: str) -> Optional[str]:
        """
        Column text for ``name``.

        Returns None for absent, null or empty values. Objects and arrays come
        back as compact JSON, booleans as ``true``/``false``.
        """
        if name not in self._fields:
            return None
        value = self._fields[name]
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        text = str(value)
        return text or None


class RowEncoder:
    """Projects JSON payloads onto the table columns as delimited rows."""

    def __init__(
        self,
        columns: Sequence[str],
        delimiter: str,
        record_log_tag: str = "log",
        logger: Optional[Any] = None,
    ):
        self.columns: List[str] = list(columns)
        self.delimiter = delimiter
        self.record_log_tag = record_log_tag
        self._logger = logger or structured_logger
        self._buffer = io.StringIO()
        # QUOTE_NOTNULL quotes every value and leaves nulls as empty fields
        self._writer = csv.writer(
            self._buffer,
            delimiter=delimiter,
            quotechar='"',
            doublequote=True,
            quoting=csv.QUOTE_NOTNULL,
            lineterminator="\n",
        )

    def format_row(self, values: Sequence[Optional[str]]) -> str:
        self._buffer.seek(0)
        self._buffer.truncate(0)
        self._writer.writerow(values)
        return self._buffer.getvalue()

    def encode_payload(self, raw_payload: Any) -> Optional[str]:
        """
        Turn one payload into a row.

        Returns:
            The row text including its line break, or None when the record
            yields nothing to load

        Raises:
            PayloadDecodeError: If the payload cannot be decoded
        """
        if raw_payload is None or raw_payload == "" or raw_payload == b"":
            return None

        payload = Payload.decode(raw_payload)
        values = [payload.get_text(column) for column in self.columns]
        if all(value is None for value in values):
            self._logger.warning(
                "encoder.record.no_matching_columns",
                payload=_snippet(raw_payload),
                table_columns=self.columns,
            )
            return None
        return self.format_row(values)

    def encode(self, chunk: Chunk, sink: BinaryIO) -> EncodeStats:
        """Write one row per usable record of ``chunk`` into ``sink``."""
        stats = EncodeStats()
        if not self.columns:
            return stats

        for line in chunk.iter_lines():
            # Undecodable buffer lines are reported with the line itself
            raw_payload: Any = line
            try:
                record = json.loads(line)
                raw_payload = (
                    record.get(self.record_log_tag)
                    if isinstance(record, dict)
                    else None
                )
                row = self.encode_payload(raw_payload)
            except (ValueError, TypeError, csv.Error) as e:
                stats.skipped += 1
                self._logger.warning(
                    "encoder.record.invalid",
                    payload=_snippet(raw_payload),
                    error=str(e),
                )
                continue

            if row is None:
                stats.skipped += 1
                continue

            data = row.encode("utf-8")
            sink.write(data)
            stats.rows += 1
            stats.bytes_written += len(data)

        self._logger.debug(
            "encoder.chunk.encoded",
            rows=stats.rows,
            skipped=stats.skipped,
            bytes_written=stats.bytes_written,
        )
        return stats


class PassthroughEncoder:
    """Copies buffered rows unchanged."""

    def __init__(self, logger: Optional[Any] = None):
        self._logger = logger or structured_logger

    def encode(self, chunk: Chunk, sink: BinaryIO) -> EncodeStats:
        written = chunk.write_to(sink)
        stats = EncodeStats(rows=len(chunk), bytes_written=written)
        self._logger.debug(
            "encoder.chunk.copied", rows=stats.rows, bytes_written=written
        )
        return stats
