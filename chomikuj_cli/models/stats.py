"""
Dataclass for tracking the statistics of a transfer run.
"""

import time
from dataclasses import dataclass, field


@dataclass
class TransferStats:
    """Tracks per-run counters for resolved, transferred and skipped files."""

    files_resolved: int = 0
    files_downloaded: int = 0
    files_resumed: int = 0
    files_reconciled: int = 0
    files_skipped_exists: int = 0
    files_skipped_extension: int = 0
    files_renamed: int = 0
    files_overwritten: int = 0
    files_not_found: int = 0
    links_unavailable: int = 0
    files_failed: int = 0
    folders_visited: int = 0
    total_bytes_downloaded: int = 0
    failed_urls: list[str] = field(default_factory=list, repr=False)

    _started_at: float = field(default=0.0, repr=False)

    def __post_init__(self):
        self._started_at = time.monotonic()

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started_at

    @property
    def average_speed_bps(self) -> float:
        """Average throughput since the run started, in bytes per second."""
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return self.total_bytes_downloaded / elapsed

    @property
    def files_skipped(self) -> int:
        return self.files_skipped_exists + self.files_skipped_extension

    @property
    def has_failures(self) -> bool:
        return bool(self.files_failed or self.files_not_found)
