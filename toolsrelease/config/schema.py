# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for toolsrelease.

Each concern of the release job gets its own frozen pydantic model. Frozen
means once you create it, you cannot mutate it. Every component receives the
section it needs at construction time; nothing reads process-wide globals.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

Every section has defaults matching the production release job, so running
without a config file is the normal case in CI.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_BINARIES: tuple[str, ...] = (
    "bsondump",
    "mongodump",
    "mongoexport",
    "mongofiles",
    "mongoimport",
    "mongorestore",
    "mongostat",
    "mongotop",
)

DEFAULT_STATIC_FILES: tuple[str, ...] = (
    "LICENSE.md",
    "README.md",
    "THIRD-PARTY-NOTICES",
)


ARCHIVE_EXTENSIONS: frozenset[str] = frozenset({".tgz", ".zip"})


class GlobalConfig(BaseModel):
    """Cross-cutting settings: observability only, for now."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Used when --log-level is not given on the command line",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class MsiConfig(BaseModel):
    """
    WiX toolchain settings for the Windows installer.

    The upgrade code identifies the product line to Windows Installer. It must
    change whenever the major version changes, so it is pinned together with
    the major version label it was issued for.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    upgrade_code: str = Field(default="f8a84cb5-a2a7-4392-bfb5-8f829b659960")
    upgrade_code_version_label: str = Field(
        default="100",
        description="Major version the upgrade code was last issued for",
    )
    wix_dir: str = Field(default="/wixtools/bin", description="Directory holding candle.exe and light.exe")
    sasl_dir: str = Field(default="/sasl/bin", description="Directory holding the SASL DLLs")
    sasl_dlls: tuple[str, ...] = Field(default=("libsasl.dll",))
    static_files: tuple[str, ...] = Field(
        default=("README.md", "THIRD-PARTY-NOTICES"),
        description="The MSI ships an RTF license, so LICENSE.md is not included",
    )
    wix_files: tuple[str, ...] = Field(
        default=(
            "Banner_Tools.bmp",
            "BinaryFragment.wxs",
            "Dialog.bmp",
            "Dialog_Tools.bmp",
            "FeatureFragment.wxs",
            "Installer_Icon_16x16.ico",
            "Installer_Icon_32x32.ico",
            "LICENSE.rtf",
            "LicensingFragment.wxs",
            "Product.wxs",
            "UIFragment.wxs",
        )
    )
    project_name: str = Field(default="MongoDB Tools")
    arch: str = Field(default="x64")


class PackagingConfig(BaseModel):
    """Where the binaries, static files and installer templates live."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    binaries: tuple[str, ...] = Field(default=DEFAULT_BINARIES, min_length=1)
    static_files: tuple[str, ...] = Field(default=DEFAULT_STATIC_FILES)
    source_root: str = Field(
        default=".",
        description="Directory containing bin/ and the static files",
    )
    bin_dir: str = Field(default="bin", description="Binary directory, relative to source_root")
    installer_dir: str = Field(
        default="installer",
        description="Directory with deb/, rpm/ and msi/ templates, relative to source_root",
    )
    output_dir: str = Field(
        default=".",
        description="Where release.tgz/.zip/.deb/.rpm/.msi are written",
    )
    msi: MsiConfig = Field(default_factory=MsiConfig)


class EvergreenConfig(BaseModel):
    """CI API settings. Credentials are taken as given, never looked up."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    base_url: str = Field(default="https://evergreen.mongodb.com/rest/v2")
    project: str = Field(default="mongo-tools")
    api_user: Optional[str] = Field(default=None)
    api_key: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StorageConfig(BaseModel):
    """Bucket layout for published artifacts and the version feed."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    bucket: str = Field(default="downloads.mongodb.org")
    prefix: str = Field(default="/tools/db")
    download_base_url: str = Field(
        default="https://fastdl.mongodb.org/tools/db",
        description="Public URL prefix recorded in the feed",
    )
    feed_filename: str = Field(default="release.json")
    acl: Optional[str] = Field(default="public-read")
    region: str = Field(default="us-east-1")
    endpoint_url: Optional[str] = Field(default=None)
    download_timeout_seconds: float = Field(default=300.0, gt=0)

    @field_validator("download_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class PlatformConfig(BaseModel):
    """One row of the release platform matrix."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    name: str
    arch: str
    os: Literal["linux", "macos", "windows"]
    pkg: Literal["none", "rpm", "deb", "msi"] = "none"
    variant: str
    extensions: Optional[tuple[str, ...]] = Field(
        default=None,
        description="Expected sign-task artifact extensions, e.g. [\".tgz\", \".rpm\"]",
    )

    @model_validator(mode="after")
    def _check_row(self) -> "PlatformConfig":
        if self.extensions is not None:
            if not self.extensions:
                raise ValueError(f"platform {self.name}: extensions must not be empty")
            for ext in self.extensions:
                if not ext.startswith("."):
                    raise ValueError(f"platform {self.name}: extension {ext!r} must start with '.'")
            archives = [ext for ext in self.extensions if ext in ARCHIVE_EXTENSIONS]
            if len(archives) > 1:
                raise ValueError(f"platform {self.name}: at most one archive extension, got {archives}")
            if len(self.extensions) - len(archives) > 1:
                raise ValueError(
                    f"platform {self.name}: at most one package extension, got {list(self.extensions)}"
                )
        if self.pkg == "msi" and self.os != "windows":
            raise ValueError(f"platform {self.name}: msi packages require os=windows")
        if self.pkg in ("rpm", "deb") and self.os != "linux":
            raise ValueError(f"platform {self.name}: {self.pkg} packages require os=linux")
        return self


class ReleaseConfig(BaseModel):
    """
    Top-level config container.

    `platforms` replaces the built-in matrix wholesale when given. It is the
    authoritative list the sign tasks are checked against, so partial
    overrides are not supported.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True
    )

    global_config: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    packaging: PackagingConfig = Field(default_factory=PackagingConfig)
    evergreen: EvergreenConfig = Field(default_factory=EvergreenConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    platforms: Optional[tuple[PlatformConfig, ...]] = Field(default=None)
    variant: Optional[str] = Field(
        default=None,
        description="Build variant of the current machine, for build-* and list-deps",
    )

    @field_validator("platforms")
    @classmethod
    def _unique_variants(
        cls, value: Optional[tuple[PlatformConfig, ...]]
    ) -> Optional[tuple[PlatformConfig, ...]]:
        if value is None:
            return value
        if not value:
            raise ValueError("platforms must not be empty when given")
        seen: set[str] = set()
        for platform in value:
            if platform.variant in seen:
                raise ValueError(f"duplicate platform variant '{platform.variant}'")
            seen.add(platform.variant)
        return value
