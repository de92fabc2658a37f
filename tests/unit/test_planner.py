"""Tests for the planning phase."""
import pytest

from chomikuj_cli.core.planner import BATCH_SIZE, DownloadPlanner
from chomikuj_cli.models.files import FileDescriptor
from chomikuj_cli.models.stats import TransferStats
from tests.fakes import auth_payload, link_entry, plan_payload


def _descriptor(file_id, name, size=10, agreement="small", cost=None):
    return FileDescriptor(
        id=file_id,
        agreement_name=agreement,
        cost=cost,
        real_id="r" + file_id,
        name=name,
        size_bytes=size,
    )


@pytest.fixture
def stats():
    return TransferStats()


@pytest.fixture
def planner(session, stats):
    return DownloadPlanner(session, stats)


class TestPlan:
    """Test suite for DownloadPlanner.plan."""

    @pytest.mark.asyncio
    async def test_link_built(self, planner, transport):
        """Test a planned file gets its URL and destination sub-path."""
        transport.queue(
            (auth_payload(), 200),
            (
                plan_payload(
                    link_entry("1", "a.pdf", 10, url="http://f.example/a?k=1&amp;s=2"),
                    global_id="/user/Docs",
                ),
                200,
            ),
        )

        (link,) = await planner.plan([_descriptor("1", "a.pdf")])

        assert link.url == "http://f.example/a?k=1&s=2"
        assert link.remote_path == "user/Docs"
        assert link.destination_path == "user/Docs/a.pdf"
        assert link.name == "a.pdf"
        assert link.expected_size == 10
        assert link.source_file.id == "1"

    @pytest.mark.asyncio
    async def test_extension_filter(self, planner, transport, stats):
        """Test {'pdf'} over a.pdf and b.docx keeps only a.pdf."""
        transport.queue(
            (auth_payload(), 200),
            (plan_payload(link_entry("1", "a.pdf", 10, url="http://f/a")), 200),
        )

        links = await planner.plan(
            [_descriptor("1", "a.pdf"), _descriptor("2", "b.docx")], {"pdf"}
        )

        assert [link.name for link in links] == ["a.pdf"]
        assert stats.files_skipped_extension == 1
        (download,) = transport.calls("Download")
        assert "<id>2</id>" not in download.text

    @pytest.mark.asyncio
    async def test_extension_filter_case_sensitive(self, planner, transport):
        transport.queue((auth_payload(), 200))

        links = await planner.plan([_descriptor("1", "A.PDF")], ["pdf"])

        assert links == []
        assert transport.calls("Download") == []

    @pytest.mark.asyncio
    async def test_nil_url_dropped(self, planner, transport, stats):
        """Test a file without a direct link is reported and dropped."""
        transport.queue(
            (auth_payload(), 200),
            (plan_payload(link_entry("1", "empty.pdf", 0, url=None)), 200),
        )

        links = await planner.plan([_descriptor("1", "empty.pdf", size=0)])

        assert links == []
        assert stats.links_unavailable == 1

    @pytest.mark.asyncio
    async def test_cost_acknowledged(self, planner, transport):
        """Test paid files echo their cost and free files send none."""
        transport.queue((auth_payload(), 200))

        await planner.plan(
            [
                _descriptor("1", "paid.zip", agreement="premium", cost=4),
                _descriptor("2", "free.zip"),
            ]
        )

        paid, free = transport.calls("Download")
        assert "<name>premium</name><cost>4</cost>" in paid.text
        assert "<name>small</name></AgreementInfo>" in free.text
        assert "<cost>" not in free.text

    @pytest.mark.asyncio
    async def test_one_file_per_call(self, planner, transport):
        """Test every planning call carries a single entry."""
        transport.queue((auth_payload(), 200))

        await planner.plan([_descriptor(str(i), f"f{i}.txt") for i in range(3)])

        downloads = transport.calls("Download")
        assert BATCH_SIZE == 1
        assert len(downloads) == 3
        assert all(d.text.count("<DownloadReqEntry>") == 1 for d in downloads)

    @pytest.mark.asyncio
    async def test_unsafe_name_sanitized(self, planner, transport):
        transport.queue(
            (auth_payload(), 200),
            (plan_payload(link_entry("1", "a:b?.pdf", 10, url="http://f/a")), 200),
        )

        (link,) = await planner.plan([_descriptor("1", "a:b?.pdf")])

        assert ":" not in link.name
        assert "?" not in link.name
        assert link.name.endswith(".pdf")

    @pytest.mark.asyncio
    async def test_empty_input(self, planner, transport):
        assert await planner.plan([]) == []
        assert transport.requests == []
