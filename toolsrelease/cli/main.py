# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for toolsrelease.

The first positional argument selects the subcommand; an optional second one
is a git revision (default: the working copy's HEAD).

The global options (--config, --log-level, --dry-run, --variant) are inherited
by every subcommand through argparse's parent parser mechanism.

Usage:
    toolsrelease get-version
    toolsrelease build-archive --variant rhel70
    toolsrelease upload-release 1a2b3c4d --dry-run
"""

import argparse
import sys
from typing import Optional, Sequence

from toolsrelease.cli.commands import (
    handle_build_archive,
    handle_build_packages,
    handle_get_version,
    handle_list_deps,
    handle_upload_release,
)
from toolsrelease.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False so help text doesn't collide between the parent and the
    subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level. Overrides global.log_level from the "
        "config (default INFO).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Do everything except building packages or uploading to the bucket.",
    )
    parent.add_argument(
        "--variant",
        type=str,
        default=None,
        help="CI build variant of this machine (defaults to $EVG_VARIANT).",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """
    Register all subcommands with their handler functions.

    Each subcommand takes the optional revision positional and sets its handler
    via set_defaults(func=...).
    """
    commands = [
        ("build-archive", "Build the release tarball or zip.", handle_build_archive),
        ("build-packages", "Build the MSI, RPM or DEB package.", handle_build_packages),
        ("get-version", "Print the release version.", handle_get_version),
        ("list-deps", "List OS packages the binaries depend on.", handle_list_deps),
        ("upload-release", "Publish signed artifacts and the download feed.", handle_upload_release),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.add_argument(
            "revision",
            nargs="?",
            default=None,
            help="Git revision to resolve the version at (default: HEAD).",
        )
        parser.set_defaults(func=handler)


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="toolsrelease",
        description="Package, checksum and publish the database tools.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    Unknown subcommands and extra positionals are rejected by argparse with
    exit status 2. No subcommand shows help and exits with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help(sys.stderr)
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
