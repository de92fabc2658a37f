"""
Structured event logging for transfer runs.
Emits human-readable log lines and, optionally, JSON Lines for later analysis.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from functools import partialmethod
from pathlib import Path
from typing import IO, Any

from rich.markup import escape

log = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class StructuredLogger:
    """
    Routes named events with key/value fields to the `logging` tree and, when
    a log directory is given, appends them to a per-run ``.jsonl`` file.

    Usage:
        events = StructuredLogger("chomikuj_cli.events", log_dir=Path("logs"))
        events.info("file_downloaded", name="a.pdf", size_bytes=1024)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
    ):
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.run_id = uuid.uuid4().hex[:12]

        self._logger = logging.getLogger(name)
        self._sink: IO[str] | None = None
        self._run_fields: dict[str, Any] = {"run_id": self.run_id, "started": _now()}

        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_path = log_dir / f"chomikuj_cli_{stamp}_{self.run_id}.jsonl"
            self._sink = self.json_path.open("a", encoding="utf-8")

    def set_session_context(self, **fields) -> None:
        """Adds run-level fields to every JSON entry written from now on."""
        self._run_fields.update(fields)

    def emit(self, level: int, event: str, **fields) -> None:
        if self._logger.isEnabledFor(level):
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            self._logger.log(level, escape(f"[{event}] {rendered}".rstrip()))

        if self._sink is None or self._sink.closed:
            return
        record = {
            "ts": _now(),
            "level": logging.getLevelName(level),
            "event": event,
            **self._run_fields,
            **fields,
        }
        try:
            self._sink.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")
            self._sink.flush()
        except OSError as e:
            # A full disk must not abort the downloads themselves.
            log.warning(f"Event log disabled: {e}")
            self.close()

    debug = partialmethod(emit, logging.DEBUG)
    info = partialmethod(emit, logging.INFO)
    warning = partialmethod(emit, logging.WARNING)
    error = partialmethod(emit, logging.ERROR)

    def close(self) -> None:
        if self._sink is not None and not self._sink.closed:
            self._sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class TransferLogger:
    """Per-file events raised by the planner and the transfer executor."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def file_downloaded(self, name: str, size_bytes: int, duration_s: float):
        self.logger.info(
            "file_downloaded",
            name=name,
            size_bytes=size_bytes,
            duration_s=round(duration_s, 2),
        )

    def file_resumed(self, name: str, offset: int, expected_size: int):
        self.logger.info(
            "file_resumed", name=name, offset=offset, expected_size=expected_size
        )

    def file_skipped(self, name: str, reason: str):
        self.logger.info("file_skipped", name=name, reason=reason)

    def file_renamed(self, original: str, renamed: str):
        self.logger.info("file_renamed", original=original, renamed=renamed)

    def file_not_found(self, name: str, status: int):
        self.logger.warning("file_not_found", name=name, status=status)

    def link_unavailable(self, file_id: str, name: str):
        self.logger.warning("link_unavailable", file_id=file_id, name=name)

    def file_failed(self, name: str, error: str, attempt: int):
        self.logger.error("file_failed", name=name, error=error, attempt=attempt)


class SessionLogger:
    """Events for the authenticated session and the folder crawl."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def login(self, username: str, status: str | None, success: bool):
        level = self.logger.info if success else self.logger.error
        level("login", username=username, status=status or "UNKNOWN")

    def folder_crawled(self, url: str, subfolders: int):
        self.logger.debug("folder_crawled", url=url, subfolders=subfolders)

    def run_completed(
        self,
        duration_s: float,
        files_downloaded: int,
        files_failed: int,
        total_bytes: int,
    ):
        self.logger.info(
            "run_completed",
            duration_s=round(duration_s, 2),
            files_downloaded=files_downloaded,
            files_failed=files_failed,
            total_bytes=total_bytes,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, TransferLogger, SessionLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, transfer_logger, session_logger)
    """
    base = StructuredLogger(
        "chomikuj_cli.events", log_dir=log_dir, enable_json=enable_json
    )
    return base, TransferLogger(base), SessionLogger(base)
