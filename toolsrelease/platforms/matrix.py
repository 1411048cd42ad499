# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The release platform matrix.

Every platform the tools ship for has exactly one CI build variant that runs a
"sign" task. The matrix is the authoritative list those sign tasks are checked
against when a release is uploaded, and the lookup table the build commands use
to find out what the current machine should produce.

The matrix is immutable and passed explicitly to whoever needs it.
"""

import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from toolsrelease.config.schema import PlatformConfig
from toolsrelease.errors import PlatformError

VARIANT_ENV_VAR = "EVG_VARIANT"


class OS(str, Enum):
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"


class Pkg(str, Enum):
    NONE = "none"
    RPM = "rpm"
    DEB = "deb"
    MSI = "msi"


_DEBIAN_ARCH: dict[str, str] = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ppc64le": "ppc64el",
}


@dataclass(frozen=True)
class Platform:
    name: str
    arch: str
    os: OS
    pkg: Pkg
    variant: str
    extensions: Optional[tuple[str, ...]] = None

    def archive_extension(self) -> str:
        return ".zip" if self.os is OS.WINDOWS else ".tgz"

    def artifact_extensions(self) -> tuple[str, ...]:
        """
        Expected artifact extensions, in order.

        One archive, plus one package when the platform has a package kind,
        unless the platform lists its extensions explicitly.
        """
        if self.extensions is not None:
            return self.extensions
        if self.pkg is Pkg.NONE:
            return (self.archive_extension(),)
        return (self.archive_extension(), f".{self.pkg.value}")

    def debian_arch(self) -> str:
        return _DEBIAN_ARCH.get(self.arch, self.arch)


def _p(name: str, arch: str, os_: OS, pkg: Pkg, variant: str) -> Platform:
    return Platform(name=name, arch=arch, os=os_, pkg=pkg, variant=variant)


DEFAULT_PLATFORMS: tuple[Platform, ...] = (
    _p("amazon", "x86_64", OS.LINUX, Pkg.RPM, "amazon"),
    _p("amazon2", "x86_64", OS.LINUX, Pkg.RPM, "amazon2"),
    _p("debian92", "x86_64", OS.LINUX, Pkg.DEB, "debian92"),
    _p("debian10", "x86_64", OS.LINUX, Pkg.DEB, "debian10"),
    _p("macos", "x86_64", OS.MACOS, Pkg.NONE, "macos"),
    _p("rhel62", "x86_64", OS.LINUX, Pkg.RPM, "rhel62"),
    _p("rhel70", "x86_64", OS.LINUX, Pkg.RPM, "rhel70"),
    _p("rhel71", "ppc64le", OS.LINUX, Pkg.RPM, "rhel71-ppc64le"),
    _p("rhel72", "s390x", OS.LINUX, Pkg.RPM, "rhel72-s390x"),
    _p("rhel80", "x86_64", OS.LINUX, Pkg.RPM, "rhel80"),
    _p("suse12", "x86_64", OS.LINUX, Pkg.RPM, "suse12"),
    _p("suse15", "x86_64", OS.LINUX, Pkg.RPM, "suse15"),
    _p("ubuntu1604", "x86_64", OS.LINUX, Pkg.DEB, "ubuntu1604"),
    _p("ubuntu1804", "x86_64", OS.LINUX, Pkg.DEB, "ubuntu1804"),
    _p("ubuntu1804", "arm64", OS.LINUX, Pkg.DEB, "ubuntu1804-arm64"),
    _p("ubuntu1804", "ppc64le", OS.LINUX, Pkg.DEB, "ubuntu1804-ppc64le"),
    _p("ubuntu1804", "s390x", OS.LINUX, Pkg.DEB, "ubuntu1804-s390x"),
    _p("ubuntu2004", "x86_64", OS.LINUX, Pkg.DEB, "ubuntu2004"),
    _p("windows", "x86_64", OS.WINDOWS, Pkg.MSI, "windows-64"),
)


class PlatformMatrix:
    """Immutable set of release platforms, keyed by CI build variant."""

    def __init__(self, platforms: Iterable[Platform]) -> None:
        self._platforms: tuple[Platform, ...] = tuple(platforms)
        by_variant: dict[str, Platform] = {}
        for platform in self._platforms:
            if platform.variant in by_variant:
                raise ValueError(f"duplicate platform variant '{platform.variant}'")
            by_variant[platform.variant] = platform
        self._by_variant: Mapping[str, Platform] = by_variant

    @classmethod
    def default(cls) -> "PlatformMatrix":
        return cls(DEFAULT_PLATFORMS)

    @classmethod
    def from_config(cls, platforms: Optional[Iterable[PlatformConfig]]) -> "PlatformMatrix":
        """Build the matrix from config rows, or the built-in one when None."""
        if platforms is None:
            return cls.default()
        return cls(
            Platform(
                name=row.name,
                arch=row.arch,
                os=OS(row.os),
                pkg=Pkg(row.pkg),
                variant=row.variant,
                extensions=row.extensions,
            )
            for row in platforms
        )

    def get_by_variant(self, variant: str) -> Optional[Platform]:
        return self._by_variant.get(variant)

    def count(self) -> int:
        return len(self._platforms)

    def artifact_extensions(self, platform: Platform) -> tuple[str, ...]:
        return platform.artifact_extensions()

    def __iter__(self) -> Iterator[Platform]:
        return iter(self._platforms)

    def __len__(self) -> int:
        return len(self._platforms)


def current_platform(
    matrix: PlatformMatrix,
    variant: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Platform:
    """
    Determine which platform this machine is building for.

    The explicit variant wins; otherwise the CI-provided EVG_VARIANT is used.

    Raises:
        PlatformError: No variant given, or the variant isn't in the matrix.
    """
    env = os.environ if environ is None else environ
    selected = variant or env.get(VARIANT_ENV_VAR)
    if not selected:
        raise PlatformError(
            "get platform", f"no build variant given and ${VARIANT_ENV_VAR} is not set"
        )
    platform = matrix.get_by_variant(selected)
    if platform is None:
        raise PlatformError("get platform", f"unknown build variant '{selected}'")
    return platform
