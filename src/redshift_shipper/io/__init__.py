"""
I/O layer for Redshift Shipper.

Everything that touches bytes, S3 or the warehouse lives here: chunk access,
row encoding, gzip compression, object storage and the COPY loader.
"""
