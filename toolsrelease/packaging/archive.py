# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tarball and zip assembly.

Layout inside both archive kinds:

    <release-name>/
    ├─ LICENSE.md, README.md, THIRD-PARTY-NOTICES
    └─ bin/
       └─ bsondump, mongodump, ...      (".exe" appended inside zips)

Tar entries keep the source file's permission bits and carry a zero mtime,
and the gzip stream is written with a zero mtime, so the same inputs always
produce the same bytes. Zip entries are always DEFLATE-compressed.

A failed write never leaves a partial archive behind.
"""

import gzip
import logging
import stat
import tarfile
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from toolsrelease.errors import ArchiveWriteError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.platforms.matrix import OS
from toolsrelease.utils.filesystem import safe_delete

_logger: logging.Logger = get_logger(__name__)

ArchiveEntry = tuple[str, Path]  # (path inside archive, source file)


def add_to_tarball(tar: tarfile.TarFile, dst: str, src: Path) -> None:
    """Write one regular file, keeping only its name, size and mode bits."""
    st = src.stat()
    info = tarfile.TarInfo(name=dst)
    info.size = st.st_size
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = 0
    info.type = tarfile.REGTYPE
    with open(src, "rb") as f:
        tar.addfile(info, f)


def write_tarball(output_path: Path, entries: Iterable[ArchiveEntry]) -> Path:
    """
    Write a gzip-compressed tarball from (dst, src) pairs.

    Raises:
        ArchiveWriteError: Any I/O failure. The partial file is removed.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(output_path, "wb") as raw:
            with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz:
                with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
                    for dst, src in entries:
                        _logger.debug("Adding to tarball", extra={"entry": dst, "source": str(src)})
                        add_to_tarball(tar, dst, src)
    except (OSError, tarfile.TarError) as err:
        safe_delete(output_path)
        raise ArchiveWriteError(f"write {output_path.name}", err) from err
    return output_path


def add_to_zip(zf: zipfile.ZipFile, dst: str, src: Path) -> None:
    info = zipfile.ZipInfo.from_file(src, arcname=dst)
    info.compress_type = zipfile.ZIP_DEFLATED
    with open(src, "rb") as f, zf.open(info, mode="w") as out:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            out.write(chunk)


def write_zip(output_path: Path, entries: Iterable[ArchiveEntry]) -> Path:
    """
    Write a zip archive from (dst, src) pairs.

    Raises:
        ArchiveWriteError: Any I/O failure. The partial file is removed.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(output_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            for dst, src in entries:
                _logger.debug("Adding to zip", extra={"entry": dst, "source": str(src)})
                add_to_zip(zf, dst, src)
    except (OSError, zipfile.BadZipFile, ValueError) as err:
        safe_delete(output_path)
        raise ArchiveWriteError(f"write {output_path.name}", err) from err
    return output_path


def archive_entries(ctx: PackageContext, binary_suffix: str = "") -> list[ArchiveEntry]:
    """Static files first, then binaries, all under <release-name>/."""
    root = PurePosixPath(ctx.release_name)
    entries: list[ArchiveEntry] = [
        (str(root / name), ctx.static_path(name)) for name in ctx.static_files
    ]
    entries.extend(
        (str(root / "bin" / f"{name}{binary_suffix}"), ctx.binary_path(name))
        for name in ctx.binaries
    )
    return entries


def build_tarball(ctx: PackageContext) -> Path:
    output = ctx.output_dir / "release.tgz"
    _logger.info("Building tarball archive", extra={"release": ctx.release_name, "output": str(output)})
    return write_tarball(output, archive_entries(ctx))


def build_zip(ctx: PackageContext) -> Path:
    output = ctx.output_dir / "release.zip"
    _logger.info("Building zip archive", extra={"release": ctx.release_name, "output": str(output)})
    return write_zip(output, archive_entries(ctx, binary_suffix=".exe"))


def build_archive(ctx: PackageContext) -> Path:
    """Zip on Windows, gzipped tarball everywhere else."""
    if ctx.platform.os is OS.WINDOWS:
        return build_zip(ctx)
    return build_tarball(ctx)
