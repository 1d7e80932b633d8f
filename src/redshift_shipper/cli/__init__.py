"""Command-line host for Redshift Shipper."""
