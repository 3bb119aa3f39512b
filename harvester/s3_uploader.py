"""S3 upload of export files."""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from harvester.exceptions import S3UploadError

logger = logging.getLogger(__name__)


class S3Uploader:
    """Handles uploading files to AWS S3."""

    def __init__(self, bucket: Optional[str] = None, prefix: str = "github/repos/", region: str = "us-east-1", run_timestamp: Optional[str] = None):
        """Initialize S3 uploader.

        Args:
            bucket: S3 bucket name
            prefix: S3 key prefix
            region: AWS region
            run_timestamp: Run timestamp for partitioning (defaults to now, UTC)
        """
        self.bucket = bucket
        self.prefix = prefix
        self.region = region
        self.run_timestamp = run_timestamp or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.enabled = bool(self.bucket)

    @classmethod
    def from_config(cls, config) -> "S3Uploader":
        return cls(bucket=config.s3_bucket, prefix=config.s3_prefix, region=config.aws_region)

    def key_for(self, file_path: str) -> str:
        return f"{self.prefix.rstrip('/')}/run={self.run_timestamp}/{os.path.basename(file_path)}"

    def upload(self, file_path: str) -> str:
        """Upload file to S3.

        Args:
            file_path: Local file path to upload

        Returns:
            The S3 key written

        Raises:
            S3UploadError: uploader disabled, file missing, or the upload failed
        """
        if not self.enabled:
            raise S3UploadError("S3 upload disabled (no bucket configured)")

        if not os.path.exists(file_path):
            raise S3UploadError(f"File not found: {file_path}")

        s3_key = self.key_for(file_path)
        try:
            s3 = boto3.client("s3", region_name=self.region)
            with open(file_path, "rb") as f:
                s3.upload_fileobj(f, self.bucket, s3_key)
        except (BotoCoreError, ClientError) as e:
            raise S3UploadError(f"Failed to upload {file_path} to s3://{self.bucket}/{s3_key}: {e}") from e

        logger.info(f"Uploaded export to s3://{self.bucket}/{s3_key}")
        return s3_key
