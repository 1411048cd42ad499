# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the toolsrelease CLI.

Each function here corresponds to one CLI subcommand and returns an exit code.
Components below this layer raise; this is the only place that catches,
logs one line describing what failed, and decides the process exit status.

stdout carries command output only (the version string, the dependency list).
Everything else goes through the structured logger.
"""

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from toolsrelease.ci.evergreen import EvergreenClient, current_build_is_patch
from toolsrelease.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    VALIDATION_ERROR,
)
from toolsrelease.config.exceptions import ConfigError
from toolsrelease.config.loader import load_config
from toolsrelease.config.schema import ReleaseConfig
from toolsrelease.errors import ReconciliationError, ReleaseError, UpgradeCodeError
from toolsrelease.logging.logger import get_logger, set_package_log_level
from toolsrelease.packaging.archive import build_archive
from toolsrelease.packaging.deps import list_linux_deps
from toolsrelease.packaging.layout import PackageContext
from toolsrelease.packaging.packages import build_packages
from toolsrelease.platforms.matrix import Platform, PlatformMatrix, current_platform
from toolsrelease.release.publish import HttpDownloader, Publisher
from toolsrelease.release.reconcile import TaskReconciler
from toolsrelease.storage.s3 import DryRunStorage, S3Storage, Storage
from toolsrelease.version.resolver import Version, VersionResolver

DEFAULT_LOG_LEVEL = "INFO"


def _setup(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[ReleaseConfig], logging.Logger]:
    """
    The shared setup every command needs: configure logging, load config.

    --log-level wins over global.log_level from the config. Until the config
    is loaded, INFO stands in for the config value.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately.
    """
    logger_name = f"toolsrelease.cli.{command_name}"
    log_level = args.log_level or DEFAULT_LOG_LEVEL
    set_package_log_level(log_level)
    logger = get_logger(logger_name, log_level=log_level)

    try:
        config = load_config(Path(args.config) if args.config is not None else None)
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    log_level = args.log_level or config.global_config.log_level
    log_file = config.global_config.log_file
    set_package_log_level(log_level)
    logger = get_logger(
        logger_name,
        log_level=log_level,
        log_file=Path(log_file) if log_file is not None else None,
    )

    return SUCCESS, config, logger


def _exit_code_for(err: Exception) -> int:
    if isinstance(err, (ConfigError, UpgradeCodeError)):
        return CONFIG_ERROR
    if isinstance(err, ReconciliationError):
        return VALIDATION_ERROR
    return RUNTIME_ERROR


def _run(
    args: argparse.Namespace,
    command_name: str,
    body: Callable[[ReleaseConfig, logging.Logger], int],
) -> int:
    """Run a command body, turning any pipeline failure into one log line and an exit code."""
    exit_code, config, logger = _setup(args, command_name)
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        return body(config, logger)
    except (ReleaseError, ConfigError, OSError) as err:
        logger.error(str(err), extra={"command": command_name})
        return _exit_code_for(err)


def _resolve_version(args: argparse.Namespace) -> Version:
    resolver = VersionResolver()
    if args.revision is None:
        return resolver.resolve_current()
    return resolver.resolve_at(args.revision)


def _current_platform(args: argparse.Namespace, config: ReleaseConfig) -> Platform:
    matrix = PlatformMatrix.from_config(config.platforms)
    return current_platform(matrix, args.variant or config.variant)


def handle_get_version(args: argparse.Namespace) -> int:
    """Print the resolved version string."""

    def body(config: ReleaseConfig, logger: logging.Logger) -> int:
        version = _resolve_version(args)
        sys.stdout.write(f"{version}\n")
        return SUCCESS

    return _run(args, "get-version", body)


def handle_build_archive(args: argparse.Namespace) -> int:
    """Build release.tgz (or release.zip on Windows) for the current platform."""

    def body(config: ReleaseConfig, logger: logging.Logger) -> int:
        version = _resolve_version(args)
        platform = _current_platform(args, config)
        ctx = PackageContext.from_config(config, platform, version)

        if args.dry_run:
            logger.info(
                "Dry run, would build archive",
                extra={"release": ctx.release_name, "output_dir": str(ctx.output_dir)},
            )
            return SUCCESS

        output = build_archive(ctx)
        logger.info("Archive built", extra={"output": str(output)})
        return SUCCESS

    return _run(args, "build-archive", body)


def handle_build_packages(args: argparse.Namespace) -> int:
    """Build the MSI, RPM or DEB for the current platform, if it has one."""

    def body(config: ReleaseConfig, logger: logging.Logger) -> int:
        version = _resolve_version(args)
        platform = _current_platform(args, config)
        ctx = PackageContext.from_config(config, platform, version)

        if args.dry_run:
            logger.info(
                "Dry run, would build packages",
                extra={"release": ctx.release_name, "pkg": platform.pkg.value},
            )
            return SUCCESS

        built = build_packages(ctx)
        logger.info("Packages built", extra={"outputs": [str(p) for p in built]})
        return SUCCESS

    return _run(args, "build-packages", body)


def handle_list_deps(args: argparse.Namespace) -> int:
    """Print the OS packages the binaries depend on, one per line."""

    def body(config: ReleaseConfig, logger: logging.Logger) -> int:
        platform = _current_platform(args, config)
        packaging = config.packaging
        binary = Path(packaging.source_root) / packaging.bin_dir / "mongodump"
        for dep in list_linux_deps(platform, binary):
            sys.stdout.write(f"{dep}\n")
        return SUCCESS

    return _run(args, "list-deps", body)


def handle_upload_release(args: argparse.Namespace) -> int:
    """Reconcile the CI sign tasks for the version's commit and publish the release."""

    def body(config: ReleaseConfig, logger: logging.Logger) -> int:
        if current_build_is_patch():
            logger.info("Current build is a patch; not uploading a release")
            return SUCCESS

        version = _resolve_version(args)
        matrix = PlatformMatrix.from_config(config.platforms)
        logger.info(
            "Starting release upload",
            extra={"version": str(version), "commit": version.commit, "dry_run": args.dry_run},
        )

        storage: Storage = DryRunStorage() if args.dry_run else S3Storage(config.storage)
        with EvergreenClient(config.evergreen) as ci, HttpDownloader(
            config.storage.download_timeout_seconds
        ) as downloader:
            resolved = TaskReconciler(ci, matrix).reconcile(version.commit)
            result = Publisher(storage, downloader, config.storage, matrix).publish(version, resolved)

        logger.info(
            "Release upload complete",
            extra={
                "version": str(version),
                "uploaded": len(result.uploaded),
                "feed": result.feed is not None,
            },
        )
        return SUCCESS

    return _run(args, "upload-release", body)
