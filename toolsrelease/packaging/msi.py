# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Windows installer assembly with the WiX toolchain.

WiX wants every input in one directory, so binaries, docs and WiX sources are
hard-linked into a scratch build directory. The SASL DLLs live on another
drive and are always copied. candle.exe compiles the .wxs sources into
objects, light.exe links them into release.msi.

The upgrade code is checked before anything else: it belongs to one major
version, and shipping a new major under the old code would make Windows
Installer treat it as an in-place upgrade of the previous product line.
"""

import logging
from pathlib import Path

from toolsrelease.errors import PackagingError, UpgradeCodeError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.utils.filesystem import copy_file, link_or_copy, scratch_directory
from toolsrelease.utils.process import CommandFailed

_logger: logging.Logger = get_logger(__name__)

WIX_SOURCES: tuple[str, ...] = (
    "Product",
    "FeatureFragment",
    "BinaryFragment",
    "LicensingFragment",
    "UIFragment",
)


def check_upgrade_code(ctx: PackageContext) -> None:
    """
    Raises:
        UpgradeCodeError: The configured upgrade code was issued for a
                          different major version.
    """
    label = str(ctx.version.major)
    expected = ctx.msi.upgrade_code_version_label
    if label != expected:
        raise UpgradeCodeError(
            "check msi upgrade code",
            f"upgrade code {ctx.msi.upgrade_code} was issued for major version {expected}, "
            f"but this release is {label}; packaging.msi.upgrade_code must be updated",
        )


def stage_msi_inputs(ctx: PackageContext, build_dir: Path) -> None:
    sasl_dir = Path(ctx.msi.sasl_dir)
    msi_templates = ctx.installer_dir / "msi"

    try:
        for name in ctx.msi.sasl_dlls:
            copy_file(sasl_dir / name, build_dir / name)
        for name in ctx.msi.static_files:
            link_or_copy(ctx.static_path(name), build_dir / name)
        for name in ctx.msi.wix_files:
            link_or_copy(msi_templates / name, build_dir / name)
        for name in ctx.binaries:
            link_or_copy(ctx.binary_path(name), build_dir / f"{name}.exe")
    except OSError as err:
        raise PackagingError("stage msi inputs", err) from err


def candle_args(ctx: PackageContext, build_dir: Path, obj_dir: Path) -> list[str]:
    v = ctx.version
    # WiX requires directory parameters to end with a separator.
    cwd = f"{build_dir}\\"
    objs = f"{obj_dir}\\"
    wix_dir = Path(ctx.msi.wix_dir)
    return [
        str(wix_dir / "candle.exe"),
        "-wx",
        "-dProductId=*",
        f"-dPlatform={ctx.msi.arch}",
        f"-dUpgradeCode={ctx.msi.upgrade_code}",
        f"-dVersion={v.major}.{v.minor}.{v.patch}",
        f"-dVersionLabel={v.major}",
        f"-dProjectName={ctx.msi.project_name}",
        f"-dSourceDir={cwd}",
        f"-dResourceDir={cwd}",
        f"-dSslDir={cwd}",
        f"-dBinaryDir={cwd}",
        f"-dTargetDir={objs}",
        '-dTargetExt=".msi"',
        '-dTargetFileName="release"',
        f"-dOutDir={objs}",
        '-dConfiguration="Release"',
        "-arch",
        ctx.msi.arch,
        "-out",
        objs,
        "-ext",
        str(wix_dir / "WixUIExtension.dll"),
        *(f"{name}.wxs" for name in WIX_SOURCES),
    ]


def light_args(ctx: PackageContext, obj_dir: Path, output_name: str) -> list[str]:
    wix_dir = Path(ctx.msi.wix_dir)
    return [
        str(wix_dir / "light.exe"),
        "-wx",
        "-cultures:en-us",
        "-out",
        output_name,
        "-ext",
        str(wix_dir / "WixUIExtension.dll"),
        *(str(obj_dir / f"{name}.wixobj") for name in WIX_SOURCES),
    ]


def build_msi(ctx: PackageContext) -> Path:
    """
    Build release.msi for the current platform.

    Raises:
        UpgradeCodeError: Stale upgrade code; nothing is built.
        PackagingError: Staging failure, or candle/light failure (the message
                        carries the tool's stderr).
    """
    check_upgrade_code(ctx)

    output = ctx.output_dir / "release.msi"
    _logger.info("Building msi installer", extra={"release": ctx.release_name, "output": str(output)})

    with scratch_directory("msi_build") as build_dir:
        stage_msi_inputs(ctx, build_dir)
        obj_dir = build_dir / "objs"
        obj_dir.mkdir()

        try:
            ctx.runner(candle_args(ctx, build_dir, obj_dir), cwd=build_dir)
        except CommandFailed as err:
            raise PackagingError("run candle.exe", err) from err

        try:
            ctx.runner(light_args(ctx, obj_dir, "release.msi"), cwd=build_dir)
        except CommandFailed as err:
            raise PackagingError("run light.exe", err) from err

        try:
            copy_file(build_dir / "release.msi", output)
        except OSError as err:
            raise PackagingError("copy msi to output", err) from err

    _logger.info("Msi installer built", extra={"output": str(output)})
    return output
