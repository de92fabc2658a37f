"""Tests for the recursive download orchestration."""
import hashlib

import pytest

from chomikuj_cli.core.download_manager import DownloadManager
from chomikuj_cli.models.config import DownloadConfig
from tests.fakes import (
    auth_payload,
    file_entry,
    folder_page,
    link_entry,
    plan_payload,
    resolve_payload,
)

ROOT = "http://chomikuj.pl/user/Root"
SUB = "http://chomikuj.pl/user/Root/Sub"


def _config(tmp_path, **overrides) -> DownloadConfig:
    settings = {
        "username": "tester",
        "password": hashlib.md5(b"secret").hexdigest(),
        "destination": str(tmp_path / "out"),
        "structure": True,
        "config_path": str(tmp_path),
    }
    settings.update(overrides)
    return DownloadConfig(**settings)


def _queue_folder(transport, file_id, name, body, global_id):
    url = f"http://files.example/{name}"
    transport.files[url] = body
    transport.queue(
        (resolve_payload(file_entry(file_id, name, len(body))), 200),
        (
            plan_payload(
                link_entry(file_id, name, len(body), url=url), global_id=global_id
            ),
            200,
        ),
    )


class TestDownloadManager:
    """Test suite for DownloadManager.download."""

    @pytest.mark.asyncio
    async def test_single_folder(self, session, transport, tmp_path):
        transport.queue((auth_payload(), 200))
        _queue_folder(transport, "1", "a.pdf", b"aaaa", "/user/Root")
        manager = DownloadManager(_config(tmp_path), session, transport)

        stats = await manager.download([ROOT])

        assert (tmp_path / "out" / "user" / "Root" / "a.pdf").read_bytes() == b"aaaa"
        assert stats.files_downloaded == 1
        assert stats.folders_visited == 1
        assert not [r for r in transport.requests if r.method == "GET"]

    @pytest.mark.asyncio
    async def test_recursive_crawl(self, session, transport, tmp_path):
        """Test subfolders are followed once, even when a page links back."""
        transport.queue((auth_payload(), 200))
        _queue_folder(transport, "1", "a.pdf", b"aaaa", "/user/Root")
        _queue_folder(transport, "2", "b.pdf", b"bbb", "/user/Root/Sub")
        transport.pages[ROOT] = (folder_page("/user/Root/Sub", "/user/Root"), 200)
        transport.pages[SUB] = (folder_page("/user/Root/"), 200)
        manager = DownloadManager(
            _config(tmp_path, recursive=True), session, transport
        )

        stats = await manager.download([ROOT])

        out = tmp_path / "out" / "user" / "Root"
        assert (out / "a.pdf").read_bytes() == b"aaaa"
        assert (out / "Sub" / "b.pdf").read_bytes() == b"bbb"
        assert stats.folders_visited == 2
        assert stats.files_downloaded == 2
        page_fetches = [r.url for r in transport.requests if r.method == "GET"]
        assert page_fetches == [ROOT, SUB]

    @pytest.mark.asyncio
    async def test_duplicate_urls_processed_once(self, session, transport, tmp_path):
        transport.queue((auth_payload(), 200))
        _queue_folder(transport, "1", "a.pdf", b"aaaa", "/user/Root")
        manager = DownloadManager(_config(tmp_path), session, transport)

        await manager.download([ROOT, ROOT + "/"])

        assert len(transport.calls("Download")) == 2

    @pytest.mark.asyncio
    async def test_resolution_failure_recorded(self, session, transport, tmp_path):
        """Test a failed service call is logged and the run continues."""
        transport.queue((auth_payload(), 200), (b"", 503))
        manager = DownloadManager(_config(tmp_path), session, transport)

        stats = await manager.download([ROOT])

        assert stats.failed_urls == [ROOT]
        assert stats.files_downloaded == 0

    @pytest.mark.asyncio
    async def test_no_urls(self, session, transport, tmp_path):
        manager = DownloadManager(_config(tmp_path), session, transport)

        stats = await manager.download([])

        assert stats.files_downloaded == 0
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_urls_from_config(self, session, transport, tmp_path):
        transport.queue((auth_payload(), 200))
        _queue_folder(transport, "1", "a.pdf", b"aaaa", "/user/Root")
        config = _config(tmp_path, source_urls=[ROOT])
        manager = DownloadManager(config, session, transport)

        stats = await manager.download()

        assert stats.files_downloaded == 1
