"""Configuration management for Redshift Shipper.

Usage:
    >>> from redshift_shipper.config import load_settings
    >>> settings = load_settings("config/redshift.yml")
    >>> settings.delimiter
    '\\t'
"""

from redshift_shipper.config.settings import (
    ConfigurationError,
    ShipperSettings,
    load_settings,
)

__all__ = [
    "ConfigurationError",
    "ShipperSettings",
    "load_settings",
]
