"""
Immutable records produced by the two protocol phases.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional


@dataclass(frozen=True)
class FileDescriptor:
    """File metadata returned by the resolution phase."""

    id: str
    agreement_name: str
    cost: Optional[int]
    real_id: str
    name: str
    size_bytes: int

    @property
    def is_free(self) -> bool:
        return self.agreement_name == "small"


@dataclass(frozen=True)
class DownloadLink:
    """
    A signed download URL for one file, as returned by the planning phase.

    `url` is None when the service has no direct link for the file.
    `destination_path` is relative to the destination root and always
    includes `remote_path`; the executor decides whether to keep it.
    """

    source_file: FileDescriptor
    url: Optional[str]
    remote_path: str
    destination_path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.destination_path).name

    @property
    def expected_size(self) -> int:
        return self.source_file.size_bytes
