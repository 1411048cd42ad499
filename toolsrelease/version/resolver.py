# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Version resolution from git.

A release version is derived from the nearest annotated tag:

    git describe <rev>               -> "100.3.1" or "100.3.1-15-gabcdef1"
    git describe --exact-match <rev> -> succeeds only on an annotated tag
    git rev-parse <rev>              -> full commit hash

A revision that is exactly an annotated tag without a pre-release suffix is
stable. Anything else carries a pre-release tag and is unstable. Every
published file name derives from the Version returned here.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from toolsrelease.errors import ResolutionError
from toolsrelease.logging.logger import get_logger
from toolsrelease.utils.process import CommandFailed, CommandRunner, run_command

_logger: logging.Logger = get_logger(__name__)

_DESCRIBE_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:-(.+))?$")
_DISTANCE_SUFFIX = re.compile(r"^\d+-g[0-9a-f]+$")


@dataclass(frozen=True)
class Version:
    """A resolved release version. Stable if and only if `pre` is None."""

    major: int
    minor: int
    patch: int
    pre: Optional[str]
    commit: str

    def __str__(self) -> str:
        if self.pre is None:
            return self.string_without_pre()
        return f"{self.string_without_pre()}-{self.pre}"

    def string_without_pre(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def is_stable(self) -> bool:
        return self.pre is None

    def rpm_release(self) -> str:
        """
        The RPM Release field: "1" for stable, "0.<pre>" otherwise.

        RPM forbids '-' in the release, so it becomes '.'. The leading "0."
        sorts pre-releases before the final "1" of the same version.
        """
        if self.pre is None:
            return "1"
        return "0." + self.pre.replace("-", ".")


def parse_describe(describe: str, commit: str, exact: bool) -> Version:
    """
    Build a Version from `git describe` output.

    Args:
        describe: Output of `git describe <rev>`.
        commit: Full commit hash of the revision.
        exact: Whether `git describe --exact-match` succeeded for the revision.

    Raises:
        ResolutionError: If the describe output isn't a semantic version.
    """
    match = _DESCRIBE_PATTERN.match(describe.strip())
    if match is None:
        raise ResolutionError("parse version", f"unrecognized git describe output {describe!r}")

    major, minor, patch, pre = match.groups()

    if exact and pre is not None and _DISTANCE_SUFFIX.match(pre):
        # An exact tag never has a distance suffix; the output is inconsistent.
        raise ResolutionError(
            "parse version", f"exact tag {describe!r} carries a commit-distance suffix"
        )
    if not exact and pre is None:
        # describe and --exact-match disagree. Only an exact annotated tag is stable.
        pre = f"0-g{commit[:7]}"

    return Version(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        pre=pre,
        commit=commit,
    )


class VersionResolver:
    """Resolves Versions by querying git through an injectable command runner."""

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._runner = runner

    def resolve_current(self) -> Version:
        return self.resolve_at("HEAD")

    def resolve_at(self, revision: str) -> Version:
        """
        Resolve the version at a revision.

        Raises:
            ResolutionError: git is unavailable, the revision is unknown, or
                             no usable tag precedes it.
        """
        try:
            commit = self._runner(["git", "rev-parse", "--verify", f"{revision}^{{commit}}"]).stdout
            describe = self._runner(["git", "describe", revision]).stdout
        except CommandFailed as err:
            raise ResolutionError(f"get version at {revision}", err) from err

        if not commit:
            raise ResolutionError(f"get version at {revision}", "git rev-parse returned nothing")

        try:
            self._runner(["git", "describe", "--exact-match", revision])
            exact = True
        except CommandFailed:
            exact = False

        version = parse_describe(describe, commit, exact)
        _logger.debug(
            "Version resolved",
            extra={"revision": revision, "version": str(version), "commit": commit},
        )
        return version
