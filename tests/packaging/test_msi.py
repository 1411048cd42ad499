# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for MSI assembly: the upgrade-code guard and the candle/light calls.
"""

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Optional

import pytest

from toolsrelease.errors import PackagingError, UpgradeCodeError
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.packaging.msi import WIX_SOURCES, build_msi, check_upgrade_code
from toolsrelease.utils.process import CommandFailed, CommandResult
from toolsrelease.version.resolver import Version


class FakeWix:
    """Snapshots the build directory on candle and writes release.msi on light."""

    def __init__(self, fail_tool: Optional[str] = None) -> None:
        self.fail_tool = fail_tool
        self.calls: list[list[str]] = []
        self.staged: set[str] = set()

    def __call__(self, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        self.calls.append(list(args))
        tool = Path(args[0]).name
        if tool == self.fail_tool:
            raise CommandFailed(args, 1, "", f"{tool}: error CNDL0001")
        assert cwd is not None
        if tool == "candle.exe":
            self.staged = {p.name for p in cwd.iterdir()}
        if tool == "light.exe":
            (cwd / args[args.index("-out") + 1]).write_bytes(b"fake msi")
        return CommandResult(stdout="", stderr="")


def test_stale_upgrade_code_stops_the_build(make_ctx: Callable[..., PackageContext]) -> None:
    wix = FakeWix()
    ctx = make_ctx("windows-64", Version(101, 0, 0, None, "c0ffee"), runner=wix)

    with pytest.raises(UpgradeCodeError, match="issued for major version 100"):
        build_msi(ctx)
    assert wix.calls == []
    assert not (ctx.output_dir / "release.msi").exists()


def test_upgrade_code_error_is_a_packaging_error(make_ctx: Callable[..., PackageContext]) -> None:
    ctx = make_ctx("windows-64", Version(99, 1, 0, None, "c0ffee"))
    with pytest.raises(PackagingError):
        check_upgrade_code(ctx)


def test_builds_release_msi(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    wix = FakeWix()
    ctx = make_ctx("windows-64", stable_version, runner=wix)

    output = build_msi(ctx)

    assert output == ctx.output_dir / "release.msi"
    assert output.read_bytes() == b"fake msi"
    assert [Path(c[0]).name for c in wix.calls] == ["candle.exe", "light.exe"]


def test_candle_parameters(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    wix = FakeWix()
    ctx = make_ctx("windows-64", stable_version, runner=wix)
    build_msi(ctx)

    candle = wix.calls[0]
    assert "-dVersion=100.3.1" in candle
    assert "-dVersionLabel=100" in candle
    assert f"-dUpgradeCode={ctx.msi.upgrade_code}" in candle
    assert "-dProjectName=MongoDB Tools" in candle
    assert candle[candle.index("-arch") + 1] == "x64"
    assert candle[-len(WIX_SOURCES):] == [f"{name}.wxs" for name in WIX_SOURCES]

    light = wix.calls[1]
    assert light[-len(WIX_SOURCES):] == [
        str(Path(candle[candle.index("-out") + 1].rstrip("\\")) / f"{name}.wixobj")
        for name in WIX_SOURCES
    ]


def test_staged_inputs(make_ctx: Callable[..., PackageContext], stable_version: Version) -> None:
    wix = FakeWix()
    build_msi(make_ctx("windows-64", stable_version, runner=wix))

    assert "mongodump.exe" in wix.staged
    assert "libsasl.dll" in wix.staged
    assert "README.md" in wix.staged
    assert "Product.wxs" in wix.staged
    assert "LICENSE.rtf" in wix.staged
    # The installer ships the RTF license instead.
    assert "LICENSE.md" not in wix.staged


def test_light_failure_carries_stderr(
    make_ctx: Callable[..., PackageContext], stable_version: Version
) -> None:
    ctx = make_ctx("windows-64", stable_version, runner=FakeWix(fail_tool="light.exe"))
    with pytest.raises(PackagingError, match="'run light.exe' failed"):
        build_msi(ctx)


def test_missing_sasl_dll_raises(
    make_ctx: Callable[..., PackageContext], stable_version: Version, tmp_path: Path
) -> None:
    (tmp_path / "sasl" / "bin" / "libsasl.dll").unlink()
    with pytest.raises(PackagingError, match="stage msi inputs"):
        build_msi(make_ctx("windows-64", stable_version, runner=FakeWix()))
