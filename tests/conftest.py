"""Pytest configuration and shared fixtures.

Nothing here talks to S3 or Redshift: boto3 clients and psycopg2 connections
are replaced with mocks in the individual tests.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest
import structlog

from redshift_shipper.config.settings import ShipperSettings, load_settings

BASE_SETTINGS: Dict[str, Any] = {
    "aws_key_id": "AKIATESTKEY",
    "aws_sec_key": "test-secret-key",
    "s3_bucket": "log-bucket",
    "path": "logs/access",
    "timestamp_key_format": "%Y%m%d-%H%M",
    "redshift_host": "redshift.example.internal",
    "redshift_dbname": "analytics",
    "redshift_user": "loader",
    "redshift_password": "test-password",
    "redshift_tablename": "access_log",
    "file_type": "json",
}


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Give every test an unconfigured, uncached structlog."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep REDSHIFT_SHIPPER_* variables and .env files out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("REDSHIFT_SHIPPER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings() -> Callable[..., ShipperSettings]:
    """Factory for validated settings; keyword arguments override the defaults."""

    def _make(**overrides: Any) -> ShipperSettings:
        values = dict(BASE_SETTINGS)
        values.update(overrides)
        return load_settings(**values)

    return _make


@pytest.fixture
def base_settings() -> Dict[str, Any]:
    """A fresh copy of the raw settings mapping (e.g. for writing YAML files)."""
    return dict(BASE_SETTINGS)


@pytest.fixture
def settings(make_settings) -> ShipperSettings:
    return make_settings()


def build_fake_connection():
    """Create a fake psycopg2 connection with a context-aware cursor."""
    conn = MagicMock()
    cursor = MagicMock()
    cursor.__enter__.return_value = cursor
    cursor.__exit__.return_value = False
    conn.cursor.return_value = cursor
    return conn, cursor


@pytest.fixture
def fake_connection(monkeypatch: pytest.MonkeyPatch):
    """Patch psycopg2.connect and return (connect_mock, conn, cursor)."""
    conn, cursor = build_fake_connection()
    connect = MagicMock(return_value=conn)
    monkeypatch.setattr("redshift_shipper.io.warehouse.psycopg2.connect", connect)
    return connect, conn, cursor
