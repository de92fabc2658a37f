"""Tests for the Typer command-line interface."""
import hashlib

import pytest
from typer.testing import CliRunner

from chomikuj_cli import __version__
from chomikuj_cli.cli import app as app_module
from chomikuj_cli.exceptions import OperationCancelledError

HASH = hashlib.md5(b"secret").hexdigest()

runner = CliRunner()


class _IdleTransport:
    def __init__(self, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


def _manager_raising(error):
    class _Manager:
        def __init__(self, *args, **kwargs):
            pass

        async def download(self, urls=None):
            raise error

    return _Manager


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "chomikuj-cli" / "config.ini"
    monkeypatch.setattr(app_module, "CONFIG_DIR", path.parent)
    monkeypatch.setattr(app_module, "CONFIG_FILE", path)
    return path


class TestCli:
    """Test suite for CLI commands."""

    def test_version(self):
        result = runner.invoke(app_module.app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_stores_hash(self, config_file):
        """Test init never writes the plaintext password."""
        result = runner.invoke(app_module.app, ["init", "tester", "secret"])

        assert result.exit_code == 0
        content = config_file.read_text()
        assert f"password = {HASH}" in content
        assert "username = tester" in content

    def test_init_with_hash(self, config_file):
        result = runner.invoke(app_module.app, ["init", "tester", HASH.upper(), "--hash"])

        assert result.exit_code == 0
        assert f"password = {HASH}" in config_file.read_text()

    def test_init_rejects_bad_hash(self, config_file):
        result = runner.invoke(app_module.app, ["init", "tester", "nope", "--hash"])

        assert result.exit_code == 1
        assert not config_file.exists()

    def test_validate(self, config_file):
        runner.invoke(app_module.app, ["init", "tester", "secret"])

        result = runner.invoke(app_module.app, ["validate"])

        assert result.exit_code == 0

    def test_validate_without_config(self, config_file):
        result = runner.invoke(app_module.app, ["validate"])

        assert result.exit_code == 1

    def test_download_without_urls(self, config_file):
        result = runner.invoke(app_module.app, ["download"])

        assert result.exit_code == 1

    def test_download_password_and_hash_exclusive(self, config_file):
        result = runner.invoke(
            app_module.app,
            ["download", "http://chomikuj.pl/u/a.pdf", "--password", "x", "--hash", HASH],
        )

        assert result.exit_code == 1

    def test_download_stdin_without_urls(self, config_file):
        result = runner.invoke(
            app_module.app, ["download", "--stdin"], input="# nothing here\n\n"
        )

        assert result.exit_code == 1


    @pytest.mark.parametrize(
        "error", [OperationCancelledError("stop"), KeyboardInterrupt()]
    )
    def test_interrupted_download_hints_resume(self, config_file, monkeypatch, error):
        runner.invoke(app_module.app, ["init", "tester", "secret"])
        monkeypatch.setattr(app_module, "HttpTransport", _IdleTransport)
        monkeypatch.setattr(app_module, "DownloadManager", _manager_raising(error))

        result = runner.invoke(
            app_module.app, ["download", "http://chomikuj.pl/u/a.pdf"]
        )

        assert result.exit_code == app_module.EXIT_INTERRUPTED
        assert "Interrupted" in result.output


class TestParseUrlLines:
    """Test suite for URL list parsing."""

    def test_comments_blanks_and_duplicates(self):
        lines = [
            "# my list\n",
            "http://chomikuj.pl/u/a.pdf  http://chomikuj.pl/u/Docs\n",
            "\n",
            "http://chomikuj.pl/u/a.pdf # again\n",
        ]

        assert app_module.parse_url_lines(lines) == [
            "http://chomikuj.pl/u/a.pdf",
            "http://chomikuj.pl/u/Docs",
        ]

    def test_non_urls_dropped(self):
        assert app_module.parse_url_lines(["chomikuj.pl/u/a.pdf", "ftp://x"]) == []
