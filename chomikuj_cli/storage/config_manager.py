"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from chomikuj_cli.exceptions import ConfigurationError
from chomikuj_cli.models.config import (
    DEFAULT_BASE_URL,
    DEFAULT_SERVICE_URL,
    DownloadConfig,
)

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is allowed when the CLI options carry the credentials.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated DownloadConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}

        if self.config_file_path.is_file():
            config_from_file = self.read_settings(migrate=True)
        elif not cli_options or not cli_options.get("username"):
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'chomikuj-cli init' first or pass --user."
            )

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return DownloadConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def read_settings(self, migrate: bool = False) -> dict[str, Any]:
        """
        Reads the raw settings of the INI file without validating them.

        Raises:
            ConfigurationError: If the file cannot be parsed.
        """
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if migrate and self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )
        try:
            return self._get_config_as_dict()
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = DownloadConfig.model_construct()
        for key in sorted(DownloadConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            config["DEFAULT"][key] = self._to_ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, list):
            return ",".join(map(str, value))
        if value is None:
            return ""
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "username": section.get("username", ""),
            "password": section.get("password", ""),
            "service_url": section.get("service_url", DEFAULT_SERVICE_URL),
            "base_url": section.get("base_url", DEFAULT_BASE_URL),
            "destination": section.get("destination", "."),
            "extensions": [
                e.strip() for e in section.get("extensions", "").split(",") if e.strip()
            ],
            "recursive": section.getboolean("recursive", False),
            "structure": section.getboolean("structure", False),
            "overwrite": section.getboolean("overwrite", False),
            "max_workers": section.getint("max_workers", 1),
            "max_attempts": section.getint("max_attempts", 3),
            "starting_stamp": section.getint("starting_stamp", 0),
            "log_json": section.getboolean("log_json", False),
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = DownloadConfig.model_construct()
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key in sorted(DownloadConfig.get_ini_keys()):
            if key in config_section:
                continue
            config_section[key] = self._to_ini_value(getattr(defaults, key, None))
            needs_saving = True
            log.debug(
                f"Migrating config: added missing key '{key}' with "
                f"value '{config_section[key]}'."
            )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
