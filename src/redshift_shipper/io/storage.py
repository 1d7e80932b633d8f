"""
S3 object storage for flushed artifacts.

``S3Storage`` wraps a boto3 client bound to one bucket. ``KeyGenerator`` picks
object keys of the form ``{path}{strftime(timestamp_key_format)}_{NN}.gz`` and
never returns a key that already exists in the bucket.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Set, Union

import boto3
from botocore.exceptions import ClientError

from redshift_shipper.config.settings import ShipperSettings
from redshift_shipper.io.exceptions import KeyGenerationError
from redshift_shipper.utils.logging import get_logger

structured_logger = get_logger(__name__)

UPLOAD_ACL = "bucket-owner-full-control"
NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def create_s3_client(settings: ShipperSettings):
    """Build a boto3 S3 client from the output settings."""
    kwargs = dict(
        aws_access_key_id=settings.aws_key_id,
        aws_secret_access_key=settings.aws_sec_key.get_secret_value(),
    )
    if settings.s3_region:
        kwargs["region_name"] = settings.s3_region
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    return boto3.client("s3", **kwargs)


class S3Storage:
    """One bucket: existence checks, uploads and s3:// URIs."""

    def __init__(self, client: Any, bucket: str, logger: Optional[Any] = None):
        self.client = client
        self.bucket = bucket
        self._logger = logger or structured_logger

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in NOT_FOUND_CODES:
                return False
            raise

    def upload(self, key: str, local_path: Union[str, Path]) -> str:
        """
        Upload a local file under ``key``; the bucket owner gets full control.

        Errors from boto3 propagate unchanged.

        Returns:
            The s3:// URI of the uploaded object
        """
        self._logger.debug(
            "s3.upload.started", bucket=self.bucket, key=key, local_path=str(local_path)
        )
        self.client.upload_file(
            str(local_path),
            self.bucket,
            key,
            ExtraArgs={"ACL": UPLOAD_ACL},
        )
        uri = self.uri(key)
        self._logger.info("s3.upload.completed", s3_uri=uri)
        return uri

    def uri(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"


class KeyGenerator:
    """
    Collision-free object keys.

    The current time is formatted once per call; the numeric suffix counts up
    from ``00`` until the key is free in storage. Keys already handed out for
    the same timestamp are skipped too, so back-to-back calls differ even if
    the first key was never uploaded. Suffixes grow past two digits after 99
    collisions; ``max_attempts`` bounds the probing.
    """

    def __init__(
        self,
        storage: S3Storage,
        path: str = "",
        timestamp_key_format: str = "year=%Y/month=%m/day=%d/hour=%H/%Y%m%d-%H%M",
        utc: bool = False,
        max_attempts: int = 1000,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[Any] = None,
    ):
        self.storage = storage
        self.path = path
        self.timestamp_key_format = timestamp_key_format
        self.utc = utc
        self.max_attempts = max_attempts
        self._clock = clock
        self._logger = logger or structured_logger
        self._issued_timestamp: Optional[str] = None
        self._issued: Set[str] = set()

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        if self.utc:
            return datetime.now(timezone.utc)
        return datetime.now()

    def timestamp_key(self) -> str:
        return self._now().strftime(self.timestamp_key_format)

    def generate(self) -> str:
        """
        Return the first free ``{path}{timestamp}_{NN}.gz`` key.

        Raises:
            KeyGenerationError: If ``max_attempts`` candidates were all taken
        """
        timestamp_key = self.timestamp_key()
        if timestamp_key != self._issued_timestamp:
            self._issued_timestamp = timestamp_key
            self._issued = set()

        for i in range(self.max_attempts):
            key = f"{self.path}{timestamp_key}_{i:02d}.gz"
            if key in self._issued or self.storage.exists(key):
                continue
            self._issued.add(key)
            if i > 0:
                self._logger.debug("s3.key.collisions", key=key, attempts=i + 1)
            return key

        self._logger.error(
            "s3.key.exhausted",
            bucket=self.storage.bucket,
            prefix=f"{self.path}{timestamp_key}",
            attempts=self.max_attempts,
        )
        raise KeyGenerationError(
            self.storage.bucket, f"{self.path}{timestamp_key}", self.max_attempts
        )
