# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release publishing.

For every reconciled sign task and each of its artifacts:

    download        -> mongodb-database-tools-<name>-<arch>-unstable<ext>
    (stable only)   -> copy to ...-<version><ext> and ...-latest-stable<ext>,
                       checksum the latest-stable copy, record it in the feed
    upload          unstable, then stable, then latest-stable

Once every platform has been uploaded, a stable release also uploads the
download feed. The feed goes last so it never points at a file that isn't in
the bucket yet.

Any failure stops the run immediately. Object names are deterministic, so the
next run simply overwrites whatever a failed run left behind.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import httpx

from toolsrelease.config.schema import ARCHIVE_EXTENSIONS, StorageConfig
from toolsrelease.errors import NetworkError, ReconciliationError, ReleaseError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.layout import PRODUCT_NAME
from toolsrelease.platforms.matrix import Platform, PlatformMatrix
from toolsrelease.release.feed import DownloadRecord, ReleaseFeed, ToolsDownload, ToolsVersion, write_feed
from toolsrelease.release.reconcile import ResolvedSignTask
from toolsrelease.storage.s3 import Storage
from toolsrelease.utils.filesystem import copy_file, scratch_directory
from toolsrelease.utils.hashing import compute_checksums, verify_checksum
from toolsrelease.version.resolver import Version

_logger: logging.Logger = get_logger(__name__)


class Downloader(Protocol):
    def download(self, url: str, dst: Path) -> None: ...


class HttpDownloader:
    """Streams artifact downloads to disk with httpx."""

    def __init__(self, timeout_seconds: float, http_client: Optional[httpx.Client] = None) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    def __enter__(self) -> "HttpDownloader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def download(self, url: str, dst: Path) -> None:
        """
        Raises:
            NetworkError: Non-2xx response or transport failure. The partial
                          file is removed.
        """
        _logger.info("Downloading", extra={"url": url, "destination": dst.name})
        try:
            with self._client.stream("GET", url) as response:
                response.raise_for_status()
                with open(dst, "wb") as out:
                    for chunk in response.iter_bytes():
                        out.write(chunk)
        except httpx.HTTPStatusError as err:
            dst.unlink(missing_ok=True)
            raise NetworkError(
                f"download {url}", f"{err.response.status_code} {err.response.reason_phrase}"
            ) from err
        except httpx.HTTPError as err:
            dst.unlink(missing_ok=True)
            raise NetworkError(f"download {url}", f"{type(err).__name__}: {err}") from err


@dataclass(frozen=True)
class PublishedNames:
    unstable: str
    stable: str
    latest_stable: str


def published_names(platform: Platform, version: Version, ext: str) -> PublishedNames:
    base = f"{PRODUCT_NAME}-{platform.name}-{platform.arch}"
    return PublishedNames(
        unstable=f"{base}-unstable{ext}",
        stable=f"{base}-{version}{ext}",
        latest_stable=f"{base}-latest-stable{ext}",
    )


def is_archive(ext: str) -> bool:
    return ext in ARCHIVE_EXTENSIONS


@dataclass
class PublishResult:
    uploaded: list[str] = field(default_factory=list)
    downloads: list[ToolsDownload] = field(default_factory=list)
    feed: Optional[ReleaseFeed] = None


class Publisher:
    def __init__(
        self,
        storage: Storage,
        downloader: Downloader,
        settings: StorageConfig,
        matrix: PlatformMatrix,
    ) -> None:
        self._storage = storage
        self._downloader = downloader
        self._settings = settings
        self._matrix = matrix

    def _upload(self, path: Path, result: PublishResult) -> None:
        self._storage.upload_file(self._settings.bucket, self._settings.prefix, path)
        result.uploaded.append(path.name)

    def _check_platform(self, resolved: ResolvedSignTask) -> Platform:
        """Re-check the reconciler's guarantees for this task before using them."""
        platform = self._matrix.get_by_variant(resolved.task.variant)
        if platform is None or platform != resolved.platform:
            raise ReconciliationError(
                f"publish {resolved.task.variant}",
                "sign task does not match a platform in the release matrix",
            )

        expected = sorted(platform.artifact_extensions())
        found = sorted(artifact.extension for artifact in resolved.artifacts)
        if found != expected:
            raise ReconciliationError(
                f"publish {resolved.task.variant}",
                f"expected artifact extensions {expected}, found {found}",
            )

        archives = [ext for ext in found if is_archive(ext)]
        if len(archives) > 1 or len(found) - len(archives) > 1:
            raise ReconciliationError(
                f"publish {resolved.task.variant}",
                f"at most one archive and one package per platform, found {found}",
            )
        return platform

    def _publish_platform(
        self,
        version: Version,
        resolved: ResolvedSignTask,
        workdir: Path,
        result: PublishResult,
    ) -> ToolsDownload:
        platform = self._check_platform(resolved)
        download = ToolsDownload(name=platform.name, arch=platform.arch)
        _logger.info("Publishing platform", extra={"variant": platform.variant})

        for artifact in resolved.artifacts:
            ext = artifact.extension
            names = published_names(platform, version, ext)

            unstable = workdir / names.unstable
            self._downloader.download(artifact.url, unstable)

            if version.is_stable():
                stable = workdir / names.stable
                latest = workdir / names.latest_stable
                copy_file(unstable, stable)
                copy_file(unstable, latest)

                checksums = compute_checksums(latest)
                for path in (unstable, stable):
                    if not verify_checksum(path, checksums.sha256):
                        raise ReleaseError(
                            f"copy {path.name}",
                            f"contents differ from {names.latest_stable}",
                        )
                record = DownloadRecord.from_checksums(
                    f"{self._settings.download_base_url}/{names.stable}",
                    checksums,
                )
                if is_archive(ext):
                    download.archive = record
                else:
                    download.package = record

            self._upload(unstable, result)
            if version.is_stable():
                self._upload(workdir / names.stable, result)
                self._upload(workdir / names.latest_stable, result)

        return download

    def publish(self, version: Version, resolved: Sequence[ResolvedSignTask]) -> PublishResult:
        """
        Upload every artifact, then the feed when the version is stable.

        Raises:
            NetworkError: A download or upload failed.
            ReconciliationError: A resolved task doesn't match the matrix.
            OSError: Local staging failed.
        """
        result = PublishResult()
        _logger.info(
            "Publishing release",
            extra={"version": str(version), "stable": version.is_stable(), "platforms": len(resolved)},
        )

        with scratch_directory("upload_release") as workdir:
            for task in resolved:
                result.downloads.append(self._publish_platform(version, task, workdir, result))

            if version.is_stable():
                result.feed = ReleaseFeed(
                    versions=(
                        ToolsVersion(
                            version=version.string_without_pre(),
                            downloads=tuple(result.downloads),
                        ),
                    )
                )
                feed_path = write_feed(result.feed, workdir / self._settings.feed_filename)
                self._upload(feed_path, result)
            else:
                _logger.info("Unstable version, not uploading the download feed")

        _logger.info(
            "Release published",
            extra={"version": str(version), "uploaded": len(result.uploaded)},
        )
        return result
