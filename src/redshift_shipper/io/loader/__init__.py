"""
Redshift COPY loader for Redshift Shipper.

Builds the COPY command for an uploaded S3 object, runs it on a fresh
connection and classifies failures as data errors (fatal) or transient
errors (retry the whole flush).
"""

from .copy_loader import CopyLoader, classify_load_error
from .models import (
    LoadCommand,
    LoadDataError,
    LoadError,
    LoadResult,
    LoadTransientError,
)
from .sql_utils import build_copy_sql, quote_literal_body

__all__ = [
    "CopyLoader",
    "LoadCommand",
    "LoadDataError",
    "LoadError",
    "LoadResult",
    "LoadTransientError",
    "build_copy_sql",
    "classify_load_error",
    "quote_literal_body",
]
