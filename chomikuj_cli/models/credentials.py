"""
Pydantic model for ChomikBox account credentials.
"""

import hashlib
import re

from pydantic import BaseModel, ConfigDict, field_validator

_MD5_HEX_REGEX = re.compile(r"^[0-9a-f]{32}$")


def hash_password(password: str) -> str:
    """Returns the lowercase MD5 hex digest the ChomikBox Auth call expects."""
    return hashlib.md5(password.encode("utf-8")).hexdigest().lower()  # noqa: S324


class Credentials(BaseModel):
    """A user name together with the MD5 hash of its password."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    username: str
    password_hash: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v:
            raise ValueError("User name cannot be empty.")
        return v

    @field_validator("password_hash")
    @classmethod
    def validate_password_hash(cls, v: str) -> str:
        """Normalizes the hash to lowercase and checks it is 32 hex characters."""
        v = v.lower()
        if not _MD5_HEX_REGEX.match(v):
            raise ValueError("Password hash must be a 32-character MD5 hex digest.")
        return v

    @classmethod
    def from_password(cls, username: str, password: str) -> "Credentials":
        """Builds credentials from a plaintext password, hashing it first."""
        return cls(username=username, password_hash=hash_password(password))

    @classmethod
    def from_hash(cls, username: str, password_hash: str) -> "Credentials":
        return cls(username=username, password_hash=password_hash)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password_hash='***')"
