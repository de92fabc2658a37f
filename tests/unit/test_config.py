"""Tests for configuration models and the INI config manager."""
import hashlib

import pytest
from pydantic import ValidationError

from chomikuj_cli.exceptions import ConfigurationError
from chomikuj_cli.models.config import DEFAULT_SERVICE_URL, DownloadConfig
from chomikuj_cli.models.credentials import Credentials, hash_password
from chomikuj_cli.storage.config_manager import ConfigManager

HASH = hashlib.md5(b"secret").hexdigest()


class TestCredentials:
    """Test suite for Credentials."""

    def test_from_password_hashes(self):
        credentials = Credentials.from_password("tester", "secret")

        assert credentials.password_hash == HASH
        assert hash_password("secret") == HASH

    def test_hash_lowercased(self):
        credentials = Credentials.from_hash("tester", HASH.upper())

        assert credentials.password_hash == HASH

    def test_invalid_hash_rejected(self):
        with pytest.raises(ValidationError):
            Credentials.from_hash("tester", "not-a-hash")

    def test_repr_hides_hash(self):
        assert HASH not in repr(Credentials.from_hash("tester", HASH))


class TestDownloadConfig:
    """Test suite for DownloadConfig validation."""

    def _config(self, **overrides):
        settings = {"username": "tester", "password": HASH, "config_path": "/tmp"}
        settings.update(overrides)
        return DownloadConfig(**settings)

    def test_defaults(self):
        config = self._config()

        assert config.destination == "."
        assert config.extensions == []
        assert config.recursive is False
        assert config.structure is False
        assert config.overwrite is False
        assert config.max_workers == 1
        assert config.service_url == DEFAULT_SERVICE_URL

    def test_extensions_normalized(self):
        config = self._config(extensions=[".pdf", " PDF ", "pdf", ""])

        assert config.extensions == ["pdf", "PDF"]

    def test_plaintext_password_rejected(self):
        with pytest.raises(ValidationError):
            self._config(password="secret")

    def test_missing_credentials_rejected(self):
        with pytest.raises(ValidationError):
            self._config(username="")

    def test_workers_bounded(self):
        with pytest.raises(ValidationError):
            self._config(max_workers=9)

    def test_base_url_gets_trailing_slash(self):
        assert self._config(base_url="http://chomikuj.pl").base_url == "http://chomikuj.pl/"


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_save_and_load(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.ini")
        manager.save_new_config({"username": "tester", "password": HASH})

        config = manager.load_config()

        assert config.username == "tester"
        assert config.password == HASH
        assert config.config_path == str(tmp_path)
        assert "secret" not in (tmp_path / "config.ini").read_text()

    def test_cli_overrides(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.ini")
        manager.save_new_config({"username": "tester", "password": HASH})

        config = manager.load_config(
            {"recursive": True, "extensions": ["pdf"], "source_urls": ["http://x/"]}
        )

        assert config.recursive is True
        assert config.extensions == ["pdf"]
        assert config.source_urls == ["http://x/"]

    def test_missing_keys_migrated(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text(f"[DEFAULT]\nusername = tester\npassword = {HASH}\n")

        ConfigManager(path).load_config()

        content = path.read_text()
        assert "max_workers = 1" in content
        assert "recursive = false" in content

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "config.ini").load_config()

    def test_missing_file_with_cli_credentials(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.ini")

        config = manager.load_config({"username": "tester", "password": HASH})

        assert config.username == "tester"

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text(f"[DEFAULT]\nusername = tester\npassword = {HASH}\nmax_workers = 50\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_unparseable_number(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nusername = tester\nmax_workers = many\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).read_settings()
