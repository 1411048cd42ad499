# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for RPM assembly with a fake rpmbuild.
"""

import tarfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Optional

import pytest

from toolsrelease.errors import PackagingError
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.packaging.rpm import build_rpm, rpm_output_name
from toolsrelease.utils.process import CommandFailed, CommandResult
from toolsrelease.version.resolver import Version


def _define(args: Sequence[str], macro: str) -> str:
    for i, arg in enumerate(args):
        if arg == "--define" and args[i + 1].startswith(f"{macro} "):
            return args[i + 1].split(" ", 1)[1]
    raise AssertionError(f"{macro} not defined in {args}")


class FakeRpmbuild:
    """Records the rendered spec and the source tarball, then writes the RPM."""

    def __init__(self, write_output: bool = True, fail_with: Optional[str] = None) -> None:
        self.write_output = write_output
        self.fail_with = fail_with
        self.calls: list[list[str]] = []
        self.spec = ""
        self.source_names: list[str] = []

    def __call__(self, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        self.calls.append(list(args))
        if self.fail_with is not None:
            raise CommandFailed(args, 1, "", self.fail_with)

        self.spec = Path(args[-1]).read_text(encoding="utf-8")
        topdir = Path(_define(args, "_topdir"))
        with tarfile.open(topdir / "SOURCES" / "mongodb-database-tools.tar.gz", "r:gz") as tar:
            self.source_names = tar.getnames()

        if self.write_output:
            fields = dict(
                line.split(": ", 1) for line in self.spec.splitlines() if ": " in line
            )
            name = f"{fields['Name']}-{fields['Version']}-{fields['Release']}.{fields['BuildArch']}.rpm"
            (Path(_define(args, "_rpmdir")) / name).write_bytes(b"fake rpm")
        return CommandResult(stdout="", stderr="")


def test_spec_metadata_round_trip(
    make_ctx: Callable[..., PackageContext], unstable_version: Version
) -> None:
    rpmbuild = FakeRpmbuild()
    ctx = make_ctx("rhel71-ppc64le", unstable_version, runner=rpmbuild)

    output = build_rpm(ctx)

    assert "Version: 100.3.1\n" in rpmbuild.spec
    assert "Release: 0.15.gabcdef1\n" in rpmbuild.spec
    assert "BuildArch: ppc64le\n" in rpmbuild.spec
    assert "@" not in rpmbuild.spec
    assert output == ctx.output_dir / "release.rpm"
    assert output.read_bytes() == b"fake rpm"


def test_stable_release_field(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    rpmbuild = FakeRpmbuild()
    ctx = make_ctx("rhel70", stable_version, runner=rpmbuild)
    build_rpm(ctx)

    assert "Release: 1\n" in rpmbuild.spec
    assert rpm_output_name(ctx) == "mongodb-database-tools-100.3.1-1.x86_64.rpm"


def test_source_tarball_layout(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    rpmbuild = FakeRpmbuild()
    build_rpm(make_ctx("rhel70", stable_version, runner=rpmbuild))

    assert "mongodb-database-tools/usr/bin/mongorestore" in rpmbuild.source_names
    assert "mongodb-database-tools/usr/share/doc/mongodb-database-tools/LICENSE.md" in rpmbuild.source_names


def test_rpmbuild_invocation(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    rpmbuild = FakeRpmbuild()
    build_rpm(make_ctx("rhel70", stable_version, runner=rpmbuild))

    args = rpmbuild.calls[0]
    assert args[:2] == ["rpmbuild", "-bb"]
    assert _define(args, "_build_name_fmt") == "%{NAME}-%{VERSION}-%{RELEASE}.%{ARCH}.rpm"
    assert args[-1].endswith("SPECS/mongodb-database-tools.spec")


def test_missing_output_raises(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    ctx = make_ctx("rhel70", stable_version, runner=FakeRpmbuild(write_output=False))
    with pytest.raises(PackagingError, match="locate rpmbuild output"):
        build_rpm(ctx)


def test_rpmbuild_failure_carries_stderr(
    make_ctx: Callable[..., PackageContext], stable_version: Version
) -> None:
    ctx = make_ctx("rhel70", stable_version, runner=FakeRpmbuild(fail_with="error: Bad exit status"))
    with pytest.raises(PackagingError, match="Bad exit status"):
        build_rpm(ctx)


def test_missing_spec_template_raises(
    make_ctx: Callable[..., PackageContext], stable_version: Version, source_tree: Path
) -> None:
    (source_tree / "installer" / "rpm" / "mongodb-database-tools.spec").unlink()
    rpmbuild = FakeRpmbuild()
    with pytest.raises(PackagingError, match="template not found"):
        build_rpm(make_ctx("rhel70", stable_version, runner=rpmbuild))
    assert rpmbuild.calls == []
