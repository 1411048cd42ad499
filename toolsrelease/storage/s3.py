# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Object-storage collaborator.

Artifacts are uploaded as `<prefix>/<file name>` in the release bucket.
Keys are deterministic, so re-running a release overwrites the same objects.

Credentials come from boto3's own provider chain; this module never looks
them up itself.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from toolsrelease.config.schema import StorageConfig
from toolsrelease.errors import NetworkError
from toolsrelease.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)


class Storage(Protocol):
    def upload_file(self, bucket: str, prefix: str, local_path: Path) -> None: ...


def object_key(prefix: str, local_path: Path) -> str:
    """Bucket key for a file: prefix "/tools/db" and release.json give "tools/db/release.json"."""
    stripped = prefix.strip("/")
    if not stripped:
        return local_path.name
    return f"{stripped}/{local_path.name}"


class S3Storage:
    """
    Upload files to an S3-compatible bucket.

    Usage::

        storage = S3Storage(config.storage)
        storage.upload_file("downloads.mongodb.org", "/tools/db", Path("release.json"))
    """

    def __init__(self, settings: StorageConfig, client: Optional[Any] = None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {"region_name": self._settings.region}
            if self._settings.endpoint_url:
                kwargs["endpoint_url"] = self._settings.endpoint_url
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def upload_file(self, bucket: str, prefix: str, local_path: Path) -> None:
        """
        Raises:
            NetworkError: The upload failed for any reason.
        """
        key = object_key(prefix, local_path)
        extra_args: dict[str, str] = {}
        if self._settings.acl:
            extra_args["ACL"] = self._settings.acl

        _logger.info("Uploading", extra={"url": f"s3://{bucket}/{key}", "source": str(local_path)})
        try:
            self._get_client().upload_file(
                str(local_path), bucket, key, ExtraArgs=extra_args or None
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as err:
            raise NetworkError(f"upload s3://{bucket}/{key}", err) from err


class DryRunStorage:
    """Records what would be uploaded without touching the bucket."""

    def __init__(self) -> None:
        self.uploads: list[str] = []

    def upload_file(self, bucket: str, prefix: str, local_path: Path) -> None:
        key = object_key(prefix, local_path)
        self.uploads.append(f"s3://{bucket}/{key}")
        _logger.info("Dry run, would upload", extra={"url": f"s3://{bucket}/{key}"})
