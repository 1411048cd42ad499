# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release publishing subsystem for toolsrelease.

Provides sign-task reconciliation against the platform matrix, artifact
publishing under the unstable, versioned and latest-stable names, and the
download feed. Nothing here builds packages; it only moves signed artifacts
from CI into the release bucket.
"""
