"""
Scoped Redshift connections.

Every schema lookup and every COPY runs on its own connection, opened for the
call and closed on the way out. Connections are never pooled or shared
between flushes.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import psycopg2

from redshift_shipper.utils.logging import get_logger

structured_logger = get_logger(__name__)


@contextmanager
def warehouse_connection(
    db_conf: Dict[str, Any], logger: Optional[Any] = None
) -> Generator[psycopg2.extensions.connection, None, None]:
    """
    Open a psycopg2 connection and guarantee it is closed.

    Args:
        db_conf: Keyword arguments for psycopg2.connect()
        logger: Bound logger used to report close failures

    Yields:
        psycopg2 connection object

    Raises:
        psycopg2.Error: If the connection cannot be established
    """
    log = logger or structured_logger
    conn = psycopg2.connect(**db_conf)
    try:
        yield conn
    finally:
        try:
            conn.close()
        except psycopg2.Error as close_error:
            # A failed close must not mask the error raised inside the block
            log.warning(
                "redshift.connection.close_failed",
                error=str(close_error),
            )
