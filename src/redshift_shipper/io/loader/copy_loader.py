"""COPY loader: runs one bulk load per flush on a dedicated connection."""

import time
from typing import Any, Dict, Optional

import psycopg2

from redshift_shipper.io.warehouse import warehouse_connection
from redshift_shipper.utils.logging import get_logger

from .models import LoadCommand, LoadDataError, LoadError, LoadResult, LoadTransientError
from .sql_utils import build_copy_sql

structured_logger = get_logger(__name__)


def classify_load_error(table: str, s3_uri: str, error: psycopg2.Error) -> LoadError:
    """
    Wrap a psycopg2 error in the matching LoadError variant.

    Redshift attaches an SQLSTATE to every error it reports about the
    statement (bad rows, type mismatches, missing table). Errors without one
    come from the client side: refused or dropped connections, timeouts.
    """
    if getattr(error, "pgcode", None):
        return LoadDataError(table, s3_uri, error)
    return LoadTransientError(table, s3_uri, error)


class CopyLoader:
    """Loads uploaded gzip files into one Redshift table."""

    def __init__(
        self,
        db_conf: Dict[str, Any],
        table: str,
        delimiter: str,
        aws_key_id: str,
        aws_sec_key: str,
        logger: Optional[Any] = None,
    ):
        self.db_conf = db_conf
        self.table = table
        self.delimiter = delimiter
        self.aws_key_id = aws_key_id
        self._aws_sec_key = aws_sec_key
        self._logger = logger or structured_logger

    def build_command(self, s3_uri: str) -> LoadCommand:
        sql = build_copy_sql(
            table=self.table,
            s3_uri=s3_uri,
            aws_key_id=self.aws_key_id,
            aws_sec_key=self._aws_sec_key,
            delimiter=self.delimiter,
        )
        return LoadCommand(
            table=self.table, s3_uri=s3_uri, sql=sql, secret=self._aws_sec_key
        )

    def load(self, s3_uri: str) -> LoadResult:
        """
        COPY the object at ``s3_uri`` into the table.

        Raises:
            LoadDataError: Redshift rejected the statement or the data
            LoadTransientError: The connection failed or was lost
        """
        command = self.build_command(s3_uri)
        self._logger.debug(
            "redshift.copy.started", s3_uri=s3_uri, command=command.redacted()
        )

        start_time = time.perf_counter()
        try:
            with warehouse_connection(self.db_conf, self._logger) as conn:
                with conn.cursor() as cursor:
                    cursor.execute(command.sql)
                conn.commit()
        except psycopg2.Error as exc:
            error = classify_load_error(self.table, s3_uri, exc)
            self._logger.error(
                "redshift.copy.failed",
                table=self.table,
                s3_uri=s3_uri,
                retryable=error.retryable,
                pgcode=error.pgcode,
                error=str(exc).strip(),
            )
            raise error from exc

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._logger.info(
            "redshift.copy.completed",
            table=self.table,
            s3_uri=s3_uri,
            duration_ms=duration_ms,
        )
        return LoadResult(table=self.table, s3_uri=s3_uri, duration_ms=duration_ms)
