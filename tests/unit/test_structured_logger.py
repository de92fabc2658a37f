"""Tests for structured event logging."""
import json

from chomikuj_cli.utils.structured_logger import create_structured_logger


class TestStructuredLogger:
    """Test suite for the JSONL event sink."""

    def test_events_written_as_json_lines(self, tmp_path):
        base, transfer_logger, session_logger = create_structured_logger(
            tmp_path, enable_json=True
        )
        with base:
            session_logger.login("tester", "OK", success=True)
            transfer_logger.file_downloaded("a.pdf", 1024, 0.5)
            transfer_logger.file_not_found("gone.pdf", 404)

        (log_file,) = tmp_path.glob("chomikuj_cli_*.jsonl")
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]

        assert [e["event"] for e in entries] == [
            "login",
            "file_downloaded",
            "file_not_found",
        ]
        assert entries[1]["name"] == "a.pdf"
        assert all("run_id" in e for e in entries)

    def test_json_disabled_without_directory(self, tmp_path):
        base, transfer_logger, _ = create_structured_logger(None, enable_json=True)

        transfer_logger.file_skipped("a.pdf", reason="exists")
        base.close()

        assert not base.enable_json
        assert list(tmp_path.iterdir()) == []
