# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for toolsrelease tests.

Fixtures here are available to every test file automatically.
We keep them minimal: a fake source checkout with binaries and installer
templates, two versions, and a factory for PackageContext.
"""

import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Optional

import pytest

from toolsrelease.config.schema import DEFAULT_BINARIES, DEFAULT_STATIC_FILES, MsiConfig, ReleaseConfig
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.platforms.matrix import PlatformMatrix
from toolsrelease.utils.process import CommandRunner, run_command
from toolsrelease.version.resolver import Version

COMMIT = "abcdef1234567890abcdef1234567890abcdef12"

DEB_CONTROL_TEMPLATE = textwrap.dedent("""\
    Package: mongodb-database-tools
    Version: @TOOLS_VERSION@
    Architecture: @ARCHITECTURE@
    Maintainer: MongoDB Packaging <packaging@mongodb.com>
    Description: mongodb-database-tools package
""")

RPM_SPEC_TEMPLATE = textwrap.dedent("""\
    Name: mongodb-database-tools
    Version: @TOOLS_VERSION@
    Release: @TOOLS_RELEASE@
    BuildArch: @ARCHITECTURE@
    Summary: mongodb-database-tools package
    License: Apache License v2.0
""")


@pytest.fixture()
def stable_version() -> Version:
    return Version(major=100, minor=3, patch=1, pre=None, commit=COMMIT)


@pytest.fixture()
def unstable_version() -> Version:
    return Version(major=100, minor=3, patch=1, pre="15-gabcdef1", commit=COMMIT)


@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    """
    A checkout with built binaries, docs and installer templates.

    Binaries are 0755 and docs 0644 so archive tests can check mode bits.
    """
    root = tmp_path / "src"
    bin_dir = root / "bin"
    bin_dir.mkdir(parents=True)
    for name in DEFAULT_BINARIES:
        binary = bin_dir / name
        binary.write_bytes(f"#!fake {name} binary\n".encode())
        binary.chmod(0o755)

    for name in DEFAULT_STATIC_FILES:
        doc = root / name
        doc.write_text(f"contents of {name}\n", encoding="utf-8")
        doc.chmod(0o644)

    deb = root / "installer" / "deb"
    deb.mkdir(parents=True)
    (deb / "control").write_text(DEB_CONTROL_TEMPLATE, encoding="utf-8")
    (deb / "postinst").write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    (deb / "prerm").write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")

    rpm = root / "installer" / "rpm"
    rpm.mkdir(parents=True)
    (rpm / "mongodb-database-tools.spec").write_text(RPM_SPEC_TEMPLATE, encoding="utf-8")

    msi = root / "installer" / "msi"
    msi.mkdir(parents=True)
    for name in MsiConfig().wix_files:
        (msi / name).write_text(f"wix input {name}\n", encoding="utf-8")

    sasl = tmp_path / "sasl" / "bin"
    sasl.mkdir(parents=True)
    (sasl / "libsasl.dll").write_bytes(b"fake sasl dll")

    return root


@pytest.fixture()
def release_config(source_tree: Path, tmp_path: Path) -> ReleaseConfig:
    return ReleaseConfig.model_validate(
        {
            "packaging": {
                "source_root": str(source_tree),
                "output_dir": str(tmp_path / "out"),
                "msi": {"sasl_dir": str(tmp_path / "sasl" / "bin")},
            }
        }
    )


@pytest.fixture()
def make_ctx(release_config: ReleaseConfig) -> Callable[..., PackageContext]:
    """Build a PackageContext for a variant from the default matrix."""

    def _make(
        variant: str,
        version: Version,
        runner: Optional[CommandRunner] = None,
    ) -> PackageContext:
        platform = PlatformMatrix.default().get_by_variant(variant)
        assert platform is not None, variant
        return PackageContext.from_config(
            release_config, platform, version, runner=runner or run_command
        )

    return _make


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """A small valid config YAML file touching several sections."""
    config_content = textwrap.dedent("""\
        global:
          log_level: "DEBUG"
        storage:
          bucket: "test-bucket"
          prefix: "/tools/test"
        evergreen:
          base_url: "https://evg.example.com/rest/v2/"
        variant: "rhel70"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A file that's valid YAML but fails schema validation (unknown key)."""
    config_content = textwrap.dedent("""\
        storage:
          bucket: "test-bucket"
          region_typo: "us-east-1"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
