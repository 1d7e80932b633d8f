"""Flush orchestration for Redshift Shipper."""

from .output import FlushResult, FlushStatus, RedshiftOutput

__all__ = ["FlushResult", "FlushStatus", "RedshiftOutput"]
