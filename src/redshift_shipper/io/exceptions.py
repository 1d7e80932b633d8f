"""Flush pipeline exceptions with structured context for operators."""

from typing import Dict, Optional


class SchemaFetchError(Exception):
    """Raised when the target table's column list cannot be read from Redshift."""

    def __init__(self, table: str, original_error: Exception):
        self.table = table
        self.original_error = original_error
        super().__init__(
            f"failed to fetch the redshift table definition. table={table}: "
            f"{type(original_error).__name__}: {original_error}"
        )

    def to_dict(self) -> Dict[str, str]:
        """Convert to structured dict for logging."""
        return {
            "error_type": "SchemaFetchError",
            "table": self.table,
            "original_error_type": type(self.original_error).__name__,
            "original_error_message": str(self.original_error),
        }


class KeyGenerationError(Exception):
    """Raised when no free object key was found within the attempt budget."""

    def __init__(self, bucket: Optional[str], prefix: str, attempts: int):
        self.bucket = bucket
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"no free object key for prefix '{prefix}' in bucket '{bucket}' "
            f"after {attempts} attempts"
        )
