from dataclasses import dataclass, field
from typing import Optional

from .sql_utils import quote_literal_body


class LoadError(Exception):
    """Raised when a COPY into Redshift fails."""

    retryable: bool = False

    def __init__(self, table: str, s3_uri: str, original_error: Exception):
        self.table = table
        self.s3_uri = s3_uri
        self.original_error = original_error
        super().__init__(
            f"failed to copy data into redshift. table={table} s3_uri={s3_uri}: "
            f"{str(original_error).strip()}"
        )

    @property
    def pgcode(self) -> Optional[str]:
        return getattr(self.original_error, "pgcode", None)


class LoadDataError(LoadError):
    """Redshift rejected the data itself; retrying the same file cannot help."""

    retryable = False


class LoadTransientError(LoadError):
    """Connection-level failure; the flush may succeed when retried."""

    retryable = True


@dataclass(frozen=True)
class LoadCommand:
    """A COPY statement for one uploaded object. ``sql`` embeds the AWS secret."""

    table: str
    s3_uri: str
    sql: str = field(repr=False)
    secret: str = field(repr=False)

    def redacted(self) -> str:
        """The statement with the secret masked, for debug logging."""
        if not self.secret:
            return self.sql
        return self.sql.replace(quote_literal_body(self.secret), "[REDACTED]")


@dataclass
class LoadResult:
    """Structured response for a completed COPY."""

    table: str
    s3_uri: str
    duration_ms: float
