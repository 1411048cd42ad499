# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Package-kind dispatch for `build-packages`.

Each machine builds for one platform. Builders whose package kind doesn't
match the current platform do nothing, so the same command runs unchanged on
every CI variant.
"""

import logging
from pathlib import Path
from typing import Optional

from toolsrelease.errors import PackagingError
from toolsrelease.logging.logger import get_logger
from toolsrelease.packaging.deb import build_deb
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.packaging.msi import build_msi
from toolsrelease.packaging.rpm import build_rpm
from toolsrelease.platforms.matrix import OS, Pkg

_logger: logging.Logger = get_logger(__name__)


def build_msi_package(ctx: PackageContext) -> Optional[Path]:
    if ctx.platform.os is not OS.WINDOWS:
        return None
    return build_msi(ctx)


def build_linux_packages(ctx: PackageContext) -> Optional[Path]:
    """
    Raises:
        PackagingError: A Linux platform with no rpm/deb package kind.
    """
    if ctx.platform.os is not OS.LINUX:
        return None
    if ctx.platform.pkg is Pkg.RPM:
        return build_rpm(ctx)
    if ctx.platform.pkg is Pkg.DEB:
        return build_deb(ctx)
    raise PackagingError(
        "build linux packages",
        f"linux platform {ctx.platform.variant!r} is neither deb nor rpm based",
    )


def build_packages(ctx: PackageContext) -> list[Path]:
    """Run the MSI builder then the Linux builders. Returns what was built."""
    built = [
        path
        for path in (build_msi_package(ctx), build_linux_packages(ctx))
        if path is not None
    ]
    if not built:
        _logger.info(
            "No installer package for this platform",
            extra={"variant": ctx.platform.variant, "os": ctx.platform.os.value},
        )
    return built
