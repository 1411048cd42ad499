# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared-library dependency listing for Linux packages.

`ldd bin/mongodump` gives the libraries the tools link against; each one is
mapped back to the OS package that owns it (`rpm -q --whatprovides` or
`dpkg -S`). The sorted, de-duplicated result is what goes into the package
metadata's dependency list.
"""

import logging
from pathlib import Path

from toolsrelease.errors import PackagingError
from toolsrelease.logging.logger import get_logger
from toolsrelease.platforms.matrix import OS, Platform, Pkg
from toolsrelease.utils.process import CommandFailed, CommandRunner, run_command

_logger: logging.Logger = get_logger(__name__)


def parse_ldd_output(output: str) -> list[str]:
    """
    Extract resolved library paths from ldd output.

    Lines look like "libc.so.6 => /lib64/libc.so.6 (0x...)". Lines without
    "=>" (the vdso, the dynamic loader) and unresolved entries are skipped.
    """
    paths: list[str] = []
    for line in output.splitlines():
        _, sep, rest = line.partition("=>")
        if not sep:
            continue
        lib_path = rest.split("(", 1)[0].strip()
        if lib_path and lib_path != "not found":
            paths.append(lib_path)
    return paths


def library_paths(binary: Path, runner: CommandRunner = run_command) -> list[str]:
    try:
        out = runner(["ldd", str(binary)]).stdout
    except CommandFailed as err:
        raise PackagingError("ldd", err) from err
    return parse_ldd_output(out)


def owning_package(platform: Platform, lib_path: str, runner: CommandRunner = run_command) -> str:
    if platform.pkg is Pkg.RPM:
        try:
            out = runner(["rpm", "-q", "--whatprovides", lib_path]).stdout
        except CommandFailed as err:
            raise PackagingError(f"rpm -q --whatprovides {lib_path}", err) from err
        return out.strip()
    if platform.pkg is Pkg.DEB:
        try:
            out = runner(["dpkg", "-S", lib_path]).stdout
        except CommandFailed as err:
            raise PackagingError(f"dpkg -S {lib_path}", err) from err
        return out.split(":", 1)[0].strip()
    raise PackagingError(
        "list deps", f"linux platform {platform.variant!r} is neither deb nor rpm based"
    )


def list_linux_deps(
    platform: Platform,
    binary: Path,
    runner: CommandRunner = run_command,
) -> list[str]:
    """
    Return the sorted OS packages the binary depends on. Empty on non-Linux.

    Raises:
        PackagingError: ldd or the package query failed.
    """
    if platform.os is not OS.LINUX:
        return []
    if platform.pkg not in (Pkg.RPM, Pkg.DEB):
        raise PackagingError(
            "list deps", f"linux platform {platform.variant!r} is neither deb nor rpm based"
        )

    deps = {owning_package(platform, lib, runner) for lib in library_paths(binary, runner)}
    deps.discard("")
    ordered = sorted(deps)
    _logger.info("Dependencies listed", extra={"variant": platform.variant, "count": len(ordered)})
    return ordered
