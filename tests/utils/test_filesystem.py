# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for filesystem utilities: scratch directories, link-or-copy staging,
atomic writes and safe deletes.
"""

import errno
import os
from pathlib import Path
from unittest import mock

import pytest

from toolsrelease.utils.filesystem import (
    atomic_write,
    copy_file,
    link_or_copy,
    safe_delete,
    scratch_directory,
)


class TestScratchDirectory:
    def test_directory_exists_inside_block_and_is_removed_after(self) -> None:
        with scratch_directory("unit") as scratch:
            assert scratch.is_dir()
            assert scratch.name.startswith("toolsrelease_unit_")
            (scratch / "file.txt").write_text("x", encoding="utf-8")
        assert not scratch.exists()

    def test_directory_is_removed_when_block_raises(self) -> None:
        with pytest.raises(RuntimeError):
            with scratch_directory("unit") as scratch:
                (scratch / "partial.deb").write_bytes(b"partial")
                raise RuntimeError("boom")
        assert not scratch.exists()

    def test_working_directory_is_unchanged(self) -> None:
        before = os.getcwd()
        with scratch_directory("unit"):
            assert os.getcwd() == before
        assert os.getcwd() == before


class TestLinkOrCopy:
    def test_hard_links_on_same_device(self, tmp_path: Path) -> None:
        src = tmp_path / "mongodump"
        src.write_bytes(b"binary")
        dst = tmp_path / "stage" / "usr" / "bin" / "mongodump"

        link_or_copy(src, dst)

        assert dst.read_bytes() == b"binary"
        assert dst.stat().st_ino == src.stat().st_ino

    def test_falls_back_to_copy_across_devices(self, tmp_path: Path) -> None:
        src = tmp_path / "libsasl.dll"
        src.write_bytes(b"dll")
        dst = tmp_path / "build" / "libsasl.dll"

        cross_device = OSError(errno.EXDEV, "Invalid cross-device link")
        with mock.patch("toolsrelease.utils.filesystem.os.link", side_effect=cross_device):
            link_or_copy(src, dst)

        assert dst.read_bytes() == b"dll"
        assert dst.stat().st_ino != src.stat().st_ino

    def test_other_link_errors_propagate(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        src.write_bytes(b"x")

        denied = OSError(errno.EACCES, "Permission denied")
        with mock.patch("toolsrelease.utils.filesystem.os.link", side_effect=denied):
            with pytest.raises(OSError) as excinfo:
                link_or_copy(src, tmp_path / "dst")
        assert excinfo.value.errno == errno.EACCES

    def test_missing_source_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            link_or_copy(tmp_path / "missing", tmp_path / "dst")


class TestCopyFile:
    def test_copy_keeps_mode_and_overwrites(self, tmp_path: Path) -> None:
        src = tmp_path / "unstable.tgz"
        src.write_bytes(b"new")
        src.chmod(0o640)
        dst = tmp_path / "stable.tgz"
        dst.write_bytes(b"old")

        copy_file(src, dst)

        assert dst.read_bytes() == b"new"
        assert dst.stat().st_mode & 0o777 == 0o640


class TestAtomicWrite:
    def test_writes_content_successfully(self, tmp_path: Path) -> None:
        target = tmp_path / "release.json"
        atomic_write(target, '{"versions": []}\n')
        assert target.read_text(encoding="utf-8") == '{"versions": []}\n'

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "deep" / "release.json"
        atomic_write(target, "nested")
        assert target.read_text(encoding="utf-8") == "nested"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "release.json"
        atomic_write(target, "first")
        atomic_write(target, "second")
        assert target.read_text(encoding="utf-8") == "second"

    def test_no_leftover_temp_files(self, tmp_path: Path) -> None:
        atomic_write(tmp_path / "clean.txt", "clean")
        assert list(tmp_path.glob(".toolsrelease_tmp_*")) == []


class TestSafeDelete:
    def test_deletes_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "release.tgz"
        target.write_bytes(b"partial")
        assert safe_delete(target) is True
        assert not target.exists()

    def test_missing_file_returns_false(self, tmp_path: Path) -> None:
        assert safe_delete(tmp_path / "nothing") is False
