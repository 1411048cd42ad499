# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
External command runner.

Packaging shells out to git, dpkg, rpmbuild, ldd and the WiX tools. All of
those calls go through `run_command` so that failures carry the tool's
stderr, and so tests can substitute a fake with the same signature.
"""

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from toolsrelease.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)


class CommandFailed(Exception):
    """An external command exited non-zero or could not be started."""

    def __init__(self, args: Sequence[str], returncode: int, stdout: str, stderr: str) -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"{self.args_list[0]} exited with status {returncode}. Stderr: {stderr.strip()!r}"
        )


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    def __call__(self, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult: ...


def run_command(args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Stdout is returned stripped of surrounding whitespace.

    Raises:
        CommandFailed: Non-zero exit, or the executable was not found.
    """
    _logger.debug("Running command", extra={"command": list(args), "cwd": str(cwd) if cwd else None})
    try:
        proc = subprocess.run(
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as err:
        raise CommandFailed(args, 127, "", str(err)) from err

    if proc.returncode != 0:
        raise CommandFailed(args, proc.returncode, proc.stdout, proc.stderr)

    return CommandResult(stdout=proc.stdout.strip(), stderr=proc.stderr)
