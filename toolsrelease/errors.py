# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the release pipeline.

Every component raises one of these and never recovers locally. Only the CLI
handlers catch them, log a single line and exit non-zero. A half-published
release is worse than a failed run, so there is no retry anywhere.

The message format mirrors what an operator sees in the CI log:

    'get evergreen tasks' failed: 503 Service Unavailable

Plain file I/O failures surface as the built-in OSError.
"""


class ReleaseError(Exception):
    """Base for every pipeline failure. Carries the failing operation's description."""

    def __init__(self, operation: str, detail: object) -> None:
        self.operation = operation
        self.detail = str(detail)
        super().__init__(f"'{operation}' failed: {self.detail}")


class ResolutionError(ReleaseError):
    """Version or source-control metadata could not be obtained or parsed."""


class PlatformError(ReleaseError):
    """The current platform could not be determined from the environment."""


class ArchiveWriteError(ReleaseError):
    """Writing a tarball or zip failed. The partial file has been removed."""


class PackagingError(ReleaseError):
    """
    Building a DEB/RPM/MSI failed.

    When an external tool is at fault, `detail` includes its captured stderr.
    """


class UpgradeCodeError(PackagingError):
    """
    The MSI upgrade code is stale for the current major version.

    This needs a human to update the configuration. Never proceed past it.
    """


class ReconciliationError(ReleaseError):
    """The CI sign-task set does not match the expected platform matrix."""


class NetworkError(ReleaseError):
    """A download, CI API call or bucket upload failed."""
