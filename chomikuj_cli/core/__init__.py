"""
Core application engine for orchestrating the download process.

The `DownloadManager` drives the run over a worklist of folder URLs and
delegates each phase: the `Resolver` maps URLs to file metadata, the
`DownloadPlanner` exchanges metadata for signed links, and the
`TransferExecutor` writes the files to disk.
"""

from .download_manager import DownloadManager
from .planner import DownloadPlanner
from .resolver import Resolver
from .transfer import TransferExecutor

__all__ = ["DownloadManager", "DownloadPlanner", "Resolver", "TransferExecutor"]
