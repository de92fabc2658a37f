"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SERVICE_URL = "http://box.chomikuj.pl/services/ChomikBoxService.svc"
DEFAULT_BASE_URL = "http://chomikuj.pl/"

_MD5_HEX_REGEX = re.compile(r"^[0-9a-fA-F]{32}$")


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Authentication
    username: str = ""
    password: str = ""  # This will be the MD5 hash

    # Service endpoints
    service_url: str = DEFAULT_SERVICE_URL
    base_url: str = DEFAULT_BASE_URL

    # Download Settings
    destination: str = "."
    extensions: list[str] = Field(default_factory=list)
    recursive: bool = False
    structure: bool = False
    overwrite: bool = False
    max_workers: int = 1
    max_attempts: int = 3
    starting_stamp: int = 0

    # Observability
    log_json: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)
    source_urls: list[str] = Field(default_factory=list, repr=False)

    @field_validator("password")
    @classmethod
    def validate_password_hash(cls, v: str) -> str:
        """The stored password is always the lowercase MD5 hash, never plaintext."""
        if v and not _MD5_HEX_REGEX.match(v):
            raise ValueError(
                "Password must be stored as a 32-character MD5 hash. "
                "Run 'chomikuj-cli init' to hash it."
            )
        return v.lower()

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        """Strips whitespace and a leading dot; matching stays case-sensitive."""
        normalized = []
        for ext in v:
            ext = ext.strip().lstrip(".")
            if ext and ext not in normalized:
                normalized.append(ext)
        return normalized

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1 or v > 8:
            raise ValueError("Max workers must be between 1 and 8.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("starting_stamp")
    @classmethod
    def validate_starting_stamp(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Starting stamp cannot be negative.")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must be an http(s) URL, got: {v}")
        return v if v.endswith("/") else v + "/"

    @model_validator(mode="after")
    def validate_auth_config(self) -> "DownloadConfig":
        """Validates that authentication settings are sufficient."""
        if not self.username or not self.password:
            raise ValueError(
                "Authentication not configured. Provide a user name and password."
            )
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_urls"}
        return {key for key in cls.model_fields if key not in internal_fields}
