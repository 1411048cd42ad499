# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The download feed (release.json).

Format:

    {
      "versions": [
        {
          "version": "100.3.1",
          "downloads": [
            {
              "name": "rhel70",
              "arch": "x86_64",
              "archive": {"url": ..., "md5": ..., "sha1": ..., "sha256": ...},
              "package": {"url": ..., "md5": ..., "sha1": ..., "sha256": ...}
            }
          ]
        }
      ]
    }

Two-space indented. A platform without an archive or package simply omits the
key. The document carries no timestamps, so the same release always
serializes to the same bytes.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from toolsrelease.logging.logger import get_logger
from toolsrelease.utils.filesystem import atomic_write
from toolsrelease.utils.hashing import ChecksumSet

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class DownloadRecord:
    url: str
    md5: str
    sha1: str
    sha256: str

    @classmethod
    def from_checksums(cls, url: str, checksums: ChecksumSet) -> "DownloadRecord":
        return cls(url=url, md5=checksums.md5, sha1=checksums.sha1, sha256=checksums.sha256)

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "md5": self.md5, "sha1": self.sha1, "sha256": self.sha256}


@dataclass
class ToolsDownload:
    """One platform's entry: at most one archive and at most one package."""

    name: str
    arch: str
    archive: Optional[DownloadRecord] = None
    package: Optional[DownloadRecord] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "arch": self.arch}
        if self.archive is not None:
            data["archive"] = self.archive.to_dict()
        if self.package is not None:
            data["package"] = self.package.to_dict()
        return data


@dataclass(frozen=True)
class ToolsVersion:
    version: str
    downloads: tuple[ToolsDownload, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "downloads": [download.to_dict() for download in self.downloads],
        }


@dataclass(frozen=True)
class ReleaseFeed:
    versions: tuple[ToolsVersion, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"versions": [version.to_dict() for version in self.versions]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"


def write_feed(feed: ReleaseFeed, path: Path) -> Path:
    """Serialize the feed to `path` atomically."""
    atomic_write(path, feed.to_json())
    _logger.info(
        "Feed written",
        extra={"path": str(path), "versions": [v.version for v in feed.versions]},
    )
    return path
