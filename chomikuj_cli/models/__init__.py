"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: configuration, credentials,
resolved file metadata, download links and run statistics.
"""

from .config import DownloadConfig
from .credentials import Credentials
from .files import DownloadLink, FileDescriptor
from .stats import TransferStats

__all__ = [
    "Credentials",
    "DownloadConfig",
    "DownloadLink",
    "FileDescriptor",
    "TransferStats",
]
