# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared inputs and naming for every package builder.

A PackageContext bundles what a builder needs: the platform being built,
the resolved version, the Binary Set, the static documentation files, and the
directories to read from and write to. Builders receive it explicitly.

Template metadata (the RPM spec file, the DEB control file) is rendered by an
ordered list of token replacements. After rendering, no `@TOKEN@` may remain:
a leftover placeholder would ship a package with a literal "@TOOLS_VERSION@"
in its metadata.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from toolsrelease.config.schema import MsiConfig, ReleaseConfig
from toolsrelease.errors import PackagingError
from toolsrelease.platforms.matrix import Platform
from toolsrelease.utils.process import CommandRunner, run_command
from toolsrelease.version.resolver import Version

PRODUCT_NAME = "mongodb-database-tools"

_PLACEHOLDER = re.compile(r"@[A-Z][A-Z0-9_]*@")


def release_name(platform: Platform, version: Version) -> str:
    """mongodb-database-tools-<platform>-<arch>-<version>"""
    return f"{PRODUCT_NAME}-{platform.name}-{platform.arch}-{version}"


@dataclass(frozen=True)
class PackageContext:
    platform: Platform
    version: Version
    binaries: tuple[str, ...]
    static_files: tuple[str, ...]
    source_root: Path
    bin_dir: Path
    installer_dir: Path
    output_dir: Path
    msi: MsiConfig
    runner: CommandRunner = run_command

    @classmethod
    def from_config(
        cls,
        config: ReleaseConfig,
        platform: Platform,
        version: Version,
        runner: CommandRunner = run_command,
    ) -> "PackageContext":
        packaging = config.packaging
        source_root = Path(packaging.source_root).resolve()
        return cls(
            platform=platform,
            version=version,
            binaries=packaging.binaries,
            static_files=packaging.static_files,
            source_root=source_root,
            bin_dir=source_root / packaging.bin_dir,
            installer_dir=source_root / packaging.installer_dir,
            output_dir=Path(packaging.output_dir).resolve(),
            msi=packaging.msi,
            runner=runner,
        )

    @property
    def release_name(self) -> str:
        return release_name(self.platform, self.version)

    def binary_path(self, name: str) -> Path:
        return self.bin_dir / name

    def static_path(self, name: str) -> Path:
        return self.source_root / name


@dataclass(frozen=True)
class TemplateSubstitution:
    """An ordered, explicit set of `@TOKEN@ -> value` replacements."""

    replacements: tuple[tuple[str, str], ...]

    def __post_init__(self) -> None:
        for token, _ in self.replacements:
            if not _PLACEHOLDER.fullmatch(token):
                raise ValueError(f"template token {token!r} must look like @NAME@")

    def apply(self, text: str) -> str:
        for token, value in self.replacements:
            text = text.replace(token, value)
        return text


def render_template(template_path: Path, substitution: TemplateSubstitution) -> str:
    """
    Read a metadata template and substitute its placeholders.

    Raises:
        PackagingError: The template is missing, or a placeholder survived.
    """
    if not template_path.is_file():
        raise PackagingError("read template", f"template not found: {template_path}")

    try:
        text = template_path.read_text(encoding="utf-8")
    except OSError as err:
        raise PackagingError("read template", err) from err

    rendered = substitution.apply(text)
    leftover = sorted(set(_PLACEHOLDER.findall(rendered)))
    if leftover:
        raise PackagingError(
            f"render {template_path.name}",
            f"unsubstituted placeholders: {', '.join(leftover)}",
        )
    return rendered


def rpm_substitution(ctx: PackageContext) -> TemplateSubstitution:
    return TemplateSubstitution(
        (
            ("@TOOLS_VERSION@", ctx.version.string_without_pre()),
            ("@TOOLS_RELEASE@", ctx.version.rpm_release()),
            ("@ARCHITECTURE@", ctx.platform.arch),
        )
    )


def deb_substitution(ctx: PackageContext) -> TemplateSubstitution:
    return TemplateSubstitution(
        (
            ("@TOOLS_VERSION@", str(ctx.version)),
            ("@ARCHITECTURE@", ctx.platform.debian_arch()),
        )
    )
