"""
Redshift output: the flush pipeline behind the buffering host's hooks.

The host calls ``format(tag, time, record)`` for every record it buffers and
``write(chunk)`` once a chunk is sealed. Each flush runs

    encode -> gzip -> pick S3 key -> upload -> COPY

and stops early, without touching S3 or Redshift, when there is nothing to
load. Errors from upload and COPY propagate to the host, which owns retries
and backoff for the whole flush. Flushes of one instance are serialized by the
host, so no locking happens here.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from redshift_shipper.config.settings import ShipperSettings
from redshift_shipper.io.chunk import Chunk
from redshift_shipper.io.compression import GzipArtifact
from redshift_shipper.io.encoder import ChunkEncoder, PassthroughEncoder, RowEncoder
from redshift_shipper.io.loader import CopyLoader
from redshift_shipper.io.schema import SchemaFetcher
from redshift_shipper.io.storage import KeyGenerator, S3Storage, create_s3_client
from redshift_shipper.utils.logging import get_logger


class FlushStatus(str, Enum):
    LOADED = "loaded"
    SKIPPED = "skipped"


@dataclass
class FlushResult:
    """Outcome of one flush."""

    status: FlushStatus
    reason: Optional[str] = None
    s3_uri: Optional[str] = None
    rows: int = 0
    bytes_written: int = 0
    duration_ms: float = 0.0

    @property
    def loaded(self) -> bool:
        return self.status is FlushStatus.LOADED


class RedshiftOutput:
    """One output instance: one table, one file encoding."""

    def __init__(
        self,
        settings: ShipperSettings,
        storage: Optional[S3Storage] = None,
        schema_fetcher: Optional[SchemaFetcher] = None,
        loader: Optional[CopyLoader] = None,
        key_generator: Optional[KeyGenerator] = None,
        logger: Optional[Any] = None,
    ):
        self.settings = settings
        context: Dict[str, Any] = {"table": settings.redshift_tablename}
        if settings.log_suffix:
            context["log_suffix"] = settings.log_suffix
        self._logger = logger or get_logger(__name__, **context)

        self.schema_fetcher = schema_fetcher or SchemaFetcher(
            settings.db_conf, settings.redshift_tablename, logger=self._logger
        )
        self.loader = loader or CopyLoader(
            db_conf=settings.db_conf,
            table=settings.redshift_tablename,
            delimiter=settings.delimiter,
            aws_key_id=settings.aws_key_id,
            aws_sec_key=settings.aws_sec_key.get_secret_value(),
            logger=self._logger,
        )
        self.storage = storage
        self.key_generator = key_generator

        self._logger.debug(
            "output.configured",
            file_type=settings.file_type,
            delimiter=settings.delimiter,
        )

    def start(self) -> None:
        """Create the S3 client and key generator unless they were injected."""
        if self.storage is None:
            self.storage = S3Storage(
                create_s3_client(self.settings),
                self.settings.s3_bucket,
                logger=self._logger,
            )
        if self.key_generator is None:
            self.key_generator = KeyGenerator(
                self.storage,
                path=self.settings.path,
                timestamp_key_format=self.settings.timestamp_key_format,
                utc=self.settings.utc,
                max_attempts=self.settings.max_key_attempts,
                logger=self._logger,
            )

    def format(self, tag: str, time: Any, record: Dict[str, Any]) -> bytes:
        """Serialize one record for the host's buffer."""
        if self.settings.is_json:
            line = json.dumps(record, ensure_ascii=False, default=str)
            return line.encode("utf-8") + b"\n"
        payload = record.get(self.settings.record_log_tag)
        if payload is None:
            payload = ""
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload) + b"\n"
        return f"{payload}\n".encode("utf-8")

    def write(self, chunk: Chunk) -> bool:
        """Host flush hook: False means nothing was loaded (a successful no-op)."""
        return self.flush(chunk).loaded

    def _skip(self, reason: str, start_time: float, **fields: Any) -> FlushResult:
        duration_ms = (time.perf_counter() - start_time) * 1000
        self._logger.debug("flush.skipped", reason=reason, **fields)
        return FlushResult(FlushStatus.SKIPPED, reason=reason, duration_ms=duration_ms)

    def _build_encoder(self) -> Optional[ChunkEncoder]:
        if not self.settings.is_json:
            return PassthroughEncoder(logger=self._logger)

        columns = self.schema_fetcher.fetch()
        if not columns:
            self._logger.warning("redshift.table.missing")
            return None
        return RowEncoder(
            columns,
            delimiter=self.settings.delimiter,
            record_log_tag=self.settings.record_log_tag,
            logger=self._logger,
        )

    def flush(self, chunk: Chunk) -> FlushResult:
        """
        Ship one chunk to Redshift.

        Returns:
            FlushResult with status LOADED, or SKIPPED when there was no valid data

        Raises:
            SchemaFetchError: The table definition could not be read
            KeyGenerationError: No free S3 key was found
            botocore.exceptions.BotoCoreError, ClientError: Upload failed
            LoadDataError, LoadTransientError: COPY failed
        """
        start_time = time.perf_counter()
        if chunk.is_empty():
            return self._skip("empty_chunk", start_time)

        encoder = self._build_encoder()
        if encoder is None:
            return self._skip("no_table_columns", start_time)

        self.start()
        with GzipArtifact() as artifact:
            stats = encoder.encode(chunk, artifact)
            artifact.finish()
            if artifact.is_empty:
                return self._skip(
                    "no_valid_data", start_time, skipped_records=stats.skipped
                )

            key = self.key_generator.generate()
            s3_uri = self.storage.upload(key, artifact.path)

        self.loader.load(s3_uri)

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._logger.info(
            "flush.completed",
            s3_uri=s3_uri,
            rows=stats.rows,
            skipped_records=stats.skipped,
            bytes_written=stats.bytes_written,
            duration_ms=duration_ms,
        )
        return FlushResult(
            FlushStatus.LOADED,
            s3_uri=s3_uri,
            rows=stats.rows,
            bytes_written=stats.bytes_written,
            duration_ms=duration_ms,
        )
