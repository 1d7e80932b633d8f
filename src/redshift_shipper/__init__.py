"""
Redshift Shipper - buffered log output for Amazon Redshift.

Buffered log records are encoded into delimited text (or passed through as-is),
gzip-compressed, uploaded to S3 and bulk-loaded into a Redshift table with a
COPY command.
"""

__version__ = "0.1.0"
