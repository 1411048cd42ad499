# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Debian package assembly.

The staged tree handed to `dpkg -b` looks like:

    <release-name>/
    ├─ DEBIAN/
    │  ├─ control     rendered from installer/deb/control
    │  ├─ md5sums     "<md5>  <path>" per shipped file, sorted by path
    │  ├─ postinst
    │  └─ prerm
    └─ usr/
       ├─ bin/bsondump, mongodump, ...
       └─ share/doc/mongodb-database-tools/LICENSE.md, ...

Everything is staged in a scratch directory; only release.deb lands in the
output directory.
"""

import logging
from pathlib import Path, PurePosixPath

from toolsrelease.errors import PackagingError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.layout import (
    PRODUCT_NAME,
    PackageContext,
    deb_substitution,
    render_template,
)
from toolsrelease.utils.filesystem import copy_file, link_or_copy, scratch_directory
from toolsrelease.utils.hashing import compute_md5
from toolsrelease.utils.process import CommandFailed

_logger: logging.Logger = get_logger(__name__)

STATIC_CONTROL_FILES: tuple[str, ...] = ("postinst", "prerm")


def stage_deb_tree(ctx: PackageContext, root: Path) -> dict[str, str]:
    """
    Link binaries and docs into `root` and return {relative path: md5}.

    The md5 is computed from the staged file, which is what dpkg will ship.
    """
    payload: list[tuple[PurePosixPath, Path]] = []
    payload.extend((PurePosixPath("usr/bin") / name, ctx.binary_path(name)) for name in ctx.binaries)
    doc_dir = PurePosixPath("usr/share/doc") / PRODUCT_NAME
    payload.extend((doc_dir / name, ctx.static_path(name)) for name in ctx.static_files)

    md5sums: dict[str, str] = {}
    for rel, src in payload:
        dst = root / rel
        _logger.debug("Staging file", extra={"source": str(src), "destination": str(dst)})
        try:
            link_or_copy(src, dst)
        except OSError as err:
            raise PackagingError(f"stage {rel}", err) from err
        md5sums[str(rel)] = compute_md5(dst)
    return md5sums


def format_md5sums(md5sums: dict[str, str]) -> str:
    return "".join(f"{md5sums[path]}  {path}\n" for path in sorted(md5sums))


def write_control_dir(ctx: PackageContext, root: Path, md5sums: dict[str, str]) -> None:
    templates = ctx.installer_dir / "deb"
    control_dir = root / "DEBIAN"
    control_dir.mkdir(parents=True, exist_ok=True)

    (control_dir / "control").write_text(
        render_template(templates / "control", deb_substitution(ctx)), encoding="utf-8"
    )
    md5_path = control_dir / "md5sums"
    md5_path.write_text(format_md5sums(md5sums), encoding="utf-8")
    md5_path.chmod(0o644)

    for name in STATIC_CONTROL_FILES:
        src = templates / name
        if not src.is_file():
            raise PackagingError("stage deb control files", f"template not found: {src}")
        link_or_copy(src, control_dir / name)


def build_deb(ctx: PackageContext) -> Path:
    """
    Build release.deb for the current platform.

    Raises:
        PackagingError: Missing template, staging failure, or dpkg failure
                        (the message carries dpkg's stderr).
    """
    output = ctx.output_dir / "release.deb"
    _logger.info("Building deb package", extra={"release": ctx.release_name, "output": str(output)})

    with scratch_directory("deb_build") as scratch:
        root = scratch / ctx.release_name
        md5sums = stage_deb_tree(ctx, root)
        write_control_dir(ctx, root, md5sums)

        built = scratch / f"{ctx.release_name}.deb"
        try:
            ctx.runner(["dpkg", "-D1", "-b", str(root), str(built)], cwd=scratch)
        except CommandFailed as err:
            raise PackagingError("run dpkg", err) from err

        try:
            copy_file(built, output)
        except OSError as err:
            raise PackagingError("copy deb to output", err) from err

    _logger.info("Deb package built", extra={"output": str(output), "files": len(md5sums)})
    return output
