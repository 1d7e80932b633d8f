"""Column lookup for the target Redshift table."""

from typing import Any, Dict, List, Optional, Tuple

import psycopg2

from redshift_shipper.io.exceptions import SchemaFetchError
from redshift_shipper.io.warehouse import warehouse_connection
from redshift_shipper.utils.logging import get_logger

structured_logger = get_logger(__name__)

FETCH_COLUMNS_SQL = """
    SELECT column_name
    FROM information_schema.columns
    WHERE table_name = %s
    ORDER BY ordinal_position
"""

FETCH_QUALIFIED_COLUMNS_SQL = """
    SELECT column_name
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""


def split_table_name(table: str) -> Tuple[Optional[str], str]:
    """
    Split ``schema.table`` into its parts.

    Examples:
        >>> split_table_name("public.access_log")
        ('public', 'access_log')
        >>> split_table_name("access_log")
        (None, 'access_log')
    """
    if "." in table:
        schema, table_name = table.split(".", 1)
        if schema.strip() and table_name.strip():
            return schema.strip(), table_name.strip()
    return None, table.strip()


class SchemaFetcher:
    """Reads the ordered column list of one table, fresh on every call."""

    def __init__(
        self, db_conf: Dict[str, Any], table: str, logger: Optional[Any] = None
    ):
        self.db_conf = db_conf
        self.table = table
        self._logger = logger or structured_logger

    def _query(self) -> Tuple[str, Tuple[str, ...]]:
        schema, table_name = split_table_name(self.table)
        if schema:
            return FETCH_QUALIFIED_COLUMNS_SQL, (schema, table_name)
        return FETCH_COLUMNS_SQL, (table_name,)

    def fetch(self) -> List[str]:
        """
        Fetch column names ordered by ordinal position.

        Returns:
            Column names; empty when the table does not exist or has no columns

        Raises:
            SchemaFetchError: On connection, authentication or query failures
        """
        sql, params = self._query()
        try:
            with warehouse_connection(self.db_conf, self._logger) as conn:
                with conn.cursor() as cursor:
                    cursor.execute(sql, params)
                    columns = [row[0] for row in cursor.fetchall()]
        except psycopg2.Error as e:
            self._logger.error(
                "redshift.schema.fetch_failed",
                table=self.table,
                error=str(e),
            )
            raise SchemaFetchError(self.table, e) from e

        self._logger.debug(
            "redshift.schema.fetched",
            table=self.table,
            column_count=len(columns),
        )
        return columns
