# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Filesystem helpers for the packaging and publishing steps.

Rules:
  - scratch work happens in a temporary directory that is removed on every
    exit path; the process working directory is never changed
  - files are staged by hard link where possible, copied where not
  - text outputs are written atomically (no partial files on failure)
"""

import errno
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


@contextmanager
def scratch_directory(prefix: str) -> Iterator[Path]:
    """
    Yield a fresh, empty directory that is deleted when the block exits.

    Callers pass the yielded path explicitly to whatever needs it.
    """
    with tempfile.TemporaryDirectory(prefix=f"toolsrelease_{prefix}_") as tmp:
        yield Path(tmp)


def link_or_copy(src: Path, dst: Path) -> None:
    """
    Hard-link src to dst, copying instead when they live on different devices.

    Raises:
        OSError: For any failure other than a cross-device link.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.link(src, dst)
    except OSError as err:
        if err.errno != errno.EXDEV:
            raise
        shutil.copy2(src, dst)


def copy_file(src: Path, dst: Path) -> None:
    """Copy file bytes and mode. Overwrites dst."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write content to a file atomically.

    We write to a temp file in the same directory, then rename it over the
    target. Rename on the same filesystem is atomic on POSIX, so the target is
    either the old content or the complete new content.

    Raises:
        OSError: If the write or rename fails.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd = tempfile.NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=str(target_path.parent),
        prefix=".toolsrelease_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(content)
        temp_fd.flush()
        temp_fd.close()
        temp_path.replace(target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def safe_delete(file_path: Path) -> bool:
    """
    Delete a file if it exists. Returns whether anything was actually deleted.
    """
    if file_path.exists():
        file_path.unlink()
        return True
    return False
