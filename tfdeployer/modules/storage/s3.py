import logging
import os
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger("tfdeployer.storage")

_NOT_FOUND_CODES = {"404", "NotFound", "NoSuchKey"}


class ReleaseStorage:
    """Release archives and Terraform state in S3."""

    def __init__(self, region: str, client=None):
        """
        Initialize storage.

        Args:
            region: AWS region of the buckets
            client: Optional boto3 S3 client (created lazily if omitted)
        """
        self.region = region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                config=Config(retries={"max_attempts": 5, "mode": "standard"}),
            )
        return self._client

    def state_exists(self, bucket: str, key: str) -> bool:
        """
        Check whether a state object exists.

        Raises:
            ClientError: For any error other than the object being absent
        """
        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "ClientError")
            if code in _NOT_FOUND_CODES:
                return False
            raise
        return True

    def download_release(self, bucket: str, key: str, dest_dir: Union[str, Path]) -> Path:
        """Download a release archive and extract it into ``dest_dir``."""
        dest_dir = Path(dest_dir)
        fd, archive_path = tempfile.mkstemp(prefix="terraform-release-", suffix=".zip")
        os.close(fd)
        try:
            logger.info(f"Downloading s3://{bucket}/{key}")
            self.client.download_file(bucket, key, archive_path)
            extract_archive(archive_path, dest_dir)
        finally:
            os.unlink(archive_path)
        return dest_dir


def extract_archive(archive_path: Union[str, Path], dest_dir: Union[str, Path]) -> int:
    """
    Extract a zip archive, keeping unix file modes recorded in it.

    Returns:
        Number of files extracted
    """
    count = 0
    with zipfile.ZipFile(archive_path) as archive:
        for item in archive.infolist():
            if item.is_dir():
                continue
            target = Path(archive.extract(item, dest_dir))
            mode = _unix_mode(item)
            if mode is not None:
                target.chmod(mode)
            count += 1
    logger.info(f"Extracted {count} files to {dest_dir}")
    return count


def _unix_mode(item: zipfile.ZipInfo) -> Optional[int]:
    mode = item.external_attr >> 16
    if item.create_system != 3 or not stat.S_ISREG(mode):
        return None
    return stat.S_IMODE(mode)
