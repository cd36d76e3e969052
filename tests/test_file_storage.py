"""Tests for report file storage."""

from __future__ import annotations

import asyncio
import hashlib
import os
import time

import pytest

from voiceai.core.exceptions import StorageError, StoragePathError
from voiceai.services.file_storage import (
    FilesystemStorage,
    calculate_checksum,
    sanitize_filename,
)


@pytest.fixture
def storage(tmp_path):
    return FilesystemStorage(tmp_path / "reports")


class TestHelpers:

    def test_checksum_is_md5_hex(self):
        assert calculate_checksum(b"%PDF") == hashlib.md5(b"%PDF").hexdigest()
        assert len(calculate_checksum(b"")) == 32

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("monthly-report-abc-Mars-2025.pdf", "monthly-report-abc-Mars-2025.pdf"),
            ("../../etc/passwd", "passwd"),
            ("..\\windows\\system.ini", "system.ini"),
            ("rapport été 2025.pdf", "rapport__t__2025.pdf"),
        ],
    )
    def test_sanitize_filename(self, name, expected):
        assert sanitize_filename(name) == expected


class TestFilesystemStorage:

    @pytest.mark.asyncio
    async def test_initialize_creates_directory(self, storage):
        await storage.initialize()

        assert storage.base_dir.is_dir()

    @pytest.mark.asyncio
    async def test_save_and_read(self, storage):
        path = await storage.save(b"%PDF-1.4", "report.pdf")

        assert path == str(storage.base_dir / "report.pdf")
        assert await storage.read(path) == b"%PDF-1.4"
        assert await storage.read("report.pdf") == b"%PDF-1.4"
        assert await storage.exists(path)

    @pytest.mark.asyncio
    async def test_uses_running_loop(self, storage, monkeypatch):
        def no_implicit_loop():
            raise RuntimeError("no current event loop")

        monkeypatch.setattr(asyncio, "get_event_loop", no_implicit_loop)

        path = await storage.save(b"%PDF-1.4", "report.pdf")

        assert await storage.read(path) == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_save_sanitizes_name(self, storage):
        path = await storage.save(b"x", "../escape.pdf")

        assert path == str(storage.base_dir / "escape.pdf")

    @pytest.mark.asyncio
    async def test_save_overwrites_same_name(self, storage):
        await storage.save(b"first", "report.pdf")
        path = await storage.save(b"second", "report.pdf")

        assert await storage.read(path) == b"second"

    @pytest.mark.asyncio
    async def test_read_outside_base_dir_is_rejected(self, storage, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("secret")

        with pytest.raises(StoragePathError):
            await storage.read(outside)
        with pytest.raises(StoragePathError):
            await storage.read("../secret.txt")

        assert not await storage.exists("../secret.txt")

    @pytest.mark.asyncio
    async def test_read_missing_file(self, storage):
        await storage.initialize()

        with pytest.raises(StorageError):
            await storage.read("missing.pdf")
        assert not await storage.exists("missing.pdf")

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        path = await storage.save(b"x", "report.pdf")

        await storage.delete(path)

        assert not await storage.exists(path)
        with pytest.raises(StorageError):
            await storage.delete(path)

    @pytest.mark.asyncio
    async def test_cleanup_old_reports(self, storage):
        old = await storage.save(b"old", "old.pdf")
        recent = await storage.save(b"recent", "recent.pdf")
        hundred_days_ago = time.time() - 100 * 24 * 60 * 60
        os.utime(old, (hundred_days_ago, hundred_days_ago))

        deleted = await storage.cleanup_old_reports(days_to_keep=90)

        assert deleted == 1
        assert not await storage.exists(old)
        assert await storage.exists(recent)

    @pytest.mark.asyncio
    async def test_cleanup_without_directory(self, storage):
        assert await storage.cleanup_old_reports() == 0
