# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
RPM assembly.

rpmbuild gets a private topdir inside a scratch directory:

    rpmbuild/
    ├─ SOURCES/mongodb-database-tools.tar.gz
    │     mongodb-database-tools/usr/bin/...
    │     mongodb-database-tools/usr/share/doc/mongodb-database-tools/...
    ├─ SPECS/mongodb-database-tools.spec     rendered from installer/rpm/
    └─ RPMS/mongodb-database-tools-<ver>-<rel>.<arch>.rpm

The output name is pinned with _build_name_fmt so the built file can be found
without globbing, then copied to release.rpm.
"""

import logging
from pathlib import Path, PurePosixPath

from toolsrelease.errors import ArchiveWriteError, PackagingError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.archive import ArchiveEntry, write_tarball
from toolsrelease.packaging.layout import (
    PRODUCT_NAME,
    PackageContext,
    render_template,
    rpm_substitution,
)
from toolsrelease.utils.filesystem import copy_file, scratch_directory
from toolsrelease.utils.process import CommandFailed

_logger: logging.Logger = get_logger(__name__)

SPEC_FILE = f"{PRODUCT_NAME}.spec"


def rpm_output_name(ctx: PackageContext) -> str:
    v = ctx.version
    return f"{PRODUCT_NAME}-{v.string_without_pre()}-{v.rpm_release()}.{ctx.platform.arch}.rpm"


def source_entries(ctx: PackageContext) -> list[ArchiveEntry]:
    root = PurePosixPath(PRODUCT_NAME) / "usr"
    doc_dir = root / "share" / "doc" / PRODUCT_NAME
    entries: list[ArchiveEntry] = [(str(doc_dir / name), ctx.static_path(name)) for name in ctx.static_files]
    entries.extend((str(root / "bin" / name), ctx.binary_path(name)) for name in ctx.binaries)
    return entries


def build_rpm(ctx: PackageContext) -> Path:
    """
    Build release.rpm for the current platform.

    Raises:
        PackagingError: Missing spec template, source tarball failure, or
                        rpmbuild failure (the message carries its stderr).
    """
    output = ctx.output_dir / "release.rpm"
    _logger.info("Building rpm package", extra={"release": ctx.release_name, "output": str(output)})

    with scratch_directory("rpm_build") as scratch:
        topdir = scratch / "rpmbuild"
        sources = topdir / "SOURCES"
        specs = topdir / "SPECS"
        rpms = topdir / "RPMS"
        for directory in (sources, specs, rpms):
            directory.mkdir(parents=True, exist_ok=True)

        try:
            write_tarball(sources / f"{PRODUCT_NAME}.tar.gz", source_entries(ctx))
        except ArchiveWriteError as err:
            raise PackagingError("create rpm source tarball", err.detail) from err

        spec_path = specs / SPEC_FILE
        spec_path.write_text(
            render_template(ctx.installer_dir / "rpm" / SPEC_FILE, rpm_substitution(ctx)),
            encoding="utf-8",
        )

        try:
            ctx.runner(
                [
                    "rpmbuild",
                    "-bb",
                    "--define",
                    f"_topdir {topdir}",
                    "--define",
                    f"_rpmdir {rpms}",
                    "--define",
                    "_build_name_fmt %{NAME}-%{VERSION}-%{RELEASE}.%{ARCH}.rpm",
                    str(spec_path),
                ],
                cwd=scratch,
            )
        except CommandFailed as err:
            raise PackagingError("rpmbuild", err) from err

        built = rpms / rpm_output_name(ctx)
        if not built.is_file():
            raise PackagingError("locate rpmbuild output", f"expected {built.name} in {rpms}")

        try:
            copy_file(built, output)
        except OSError as err:
            raise PackagingError("copy rpm to output", err) from err

    _logger.info("Rpm package built", extra={"output": str(output), "rpm": rpm_output_name(ctx)})
    return output
