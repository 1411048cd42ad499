# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Checksum service.

Digests feed the md5sums manifest inside DEB packages and the
MD5/SHA1/SHA256 triple published in the download feed. The publisher also
uses them to confirm a staged copy matches the download it came from. The result
depends only on file bytes, never on permissions or timestamps, so the same
artifact hashes identically on every platform.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path

HASH_BUFFER_SIZE = 65536  # 64 KiB
SUPPORTED_ALGORITHMS: tuple[str, ...] = ("md5", "sha1", "sha256")


@dataclass(frozen=True)
class ChecksumSet:
    """The three digests the download feed publishes for every artifact."""

    md5: str
    sha1: str
    sha256: str


def compute_digest(file_path: Path, algorithm: str) -> str:
    """
    Compute the hex digest of a file with the given algorithm.

    Reads the whole file once, in 64 KiB chunks.

    Args:
        file_path: Path to the file to hash.
        algorithm: One of "md5", "sha1", "sha256".

    Returns:
        Lowercase hex string of the digest.

    Raises:
        ValueError: If the algorithm isn't supported.
        OSError: If the file can't be read.
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported digest algorithm '{algorithm}'. "
            f"Must be one of: {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    hasher = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_md5(file_path: Path) -> str:
    return compute_digest(file_path, "md5")


def compute_checksums(file_path: Path) -> ChecksumSet:
    """Compute MD5, SHA1 and SHA256 of a file, one full read per algorithm."""
    return ChecksumSet(
        md5=compute_digest(file_path, "md5"),
        sha1=compute_digest(file_path, "sha1"),
        sha256=compute_digest(file_path, "sha256"),
    )


def verify_checksum(file_path: Path, expected_hash: str, algorithm: str = "sha256") -> bool:
    """
    Check whether a file's digest matches the expected hex string.

    Comparison is case-insensitive.
    """
    return compute_digest(file_path, algorithm) == expected_hash.lower()
