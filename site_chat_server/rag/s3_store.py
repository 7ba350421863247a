"""S3 implementation of the blob store.

Not imported by default; install the "s3" extra and set S3_BUCKET to enable it.
"""

import logging
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import UpstreamProviderError
from .indexer import MANIFEST_FILE

logger = logging.getLogger(__name__)


class S3BlobStore:
    """Mirror cache entries to ``s3://<bucket>/<prefix>/<key>/<file>``."""

    def __init__(self, bucket: str, prefix: str = "site-index", region_name: str | None = None, client=None):
        """Initialize the store.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix under which entries are stored
            region_name: AWS region (default resolution chain when omitted)
            client: Optional preconfigured boto3 S3 client
        """
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = client or boto3.client("s3", region_name=region_name or None)

    def _entry_prefix(self, key: str) -> str:
        return f"{self.prefix}/{key}/" if self.prefix else f"{key}/"

    def exists(self, key: str) -> bool:
        # The manifest is uploaded last, so its presence marks a complete entry
        object_key = self._entry_prefix(key) + MANIFEST_FILE
        try:
            self.client.head_object(Bucket=self.bucket, Key=object_key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise UpstreamProviderError(f"S3 lookup of {object_key} failed: {e}") from e
        except BotoCoreError as e:
            raise UpstreamProviderError(f"S3 lookup of {object_key} failed: {e}") from e

    def upload(self, local_path: Path, key: str) -> None:
        files = sorted(p for p in Path(local_path).iterdir() if p.is_file())
        # Manifest goes last so a partial upload never looks complete
        files.sort(key=lambda p: p.name == MANIFEST_FILE)
        try:
            for file_path in files:
                object_key = self._entry_prefix(key) + file_path.name
                self.client.upload_file(str(file_path), self.bucket, object_key)
                logger.debug(f"[S3] Uploaded {file_path.name} to s3://{self.bucket}/{object_key}")
        except (BotoCoreError, ClientError) as e:
            raise UpstreamProviderError(f"S3 upload of entry {key} failed: {e}") from e

    def download(self, key: str, local_path: Path) -> None:
        local_path = Path(local_path)
        local_path.mkdir(parents=True, exist_ok=True)
        prefix = self._entry_prefix(key)
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(prefix) :]
                    if not name or "/" in name:
                        continue
                    self.client.download_file(self.bucket, obj["Key"], str(local_path / name))
                    logger.debug(f"[S3] Downloaded s3://{self.bucket}/{obj['Key']}")
        except (BotoCoreError, ClientError) as e:
            raise UpstreamProviderError(f"S3 download of entry {key} failed: {e}") from e
