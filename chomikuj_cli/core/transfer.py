"""
Resumable, collision-safe file transfers to local storage.
"""

import asyncio
import logging
import os
import time
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import AsyncIterator, Mapping, Optional, Protocol

import aiofiles
from rich.markup import escape

from chomikuj_cli.exceptions import (
    FileSystemFatalError,
    TransferNotFoundError,
    TransportError,
)
from chomikuj_cli.models.files import DownloadLink
from chomikuj_cli.models.stats import TransferStats
from chomikuj_cli.utils.cancellation import CancellationToken
from chomikuj_cli.utils.formatting import format_size, format_speed, shorten_url
from chomikuj_cli.utils.path import create_dir, next_available_path, part_path
from chomikuj_cli.utils.structured_logger import TransferLogger

log = logging.getLogger(__name__)


class StreamingResponse(Protocol):
    status: int

    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]: ...


class StreamingTransport(Protocol):
    def open_stream(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> AbstractAsyncContextManager[StreamingResponse]: ...


def range_header(offset: int, expected_size: int) -> str:
    """Builds the byte range for a fresh (open-ended) or resumed (bounded) request."""
    if offset > 0 and expected_size > offset:
        return f"bytes={offset}-{expected_size - 1}"
    return f"bytes={offset}-"


class TransferExecutor:
    """
    Downloads planned links into `<name>.part` files and finalizes them with
    an atomic rename.

    Links run one after another unless `max_workers` is above one; each
    destination path is guarded by its own lock either way.
    """

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        transport: StreamingTransport,
        stats: Optional[TransferStats] = None,
        transfer_logger: Optional[TransferLogger] = None,
        cancel_token: Optional[CancellationToken] = None,
        max_workers: int = 1,
        max_attempts: int = 3,
        base_delay: float = 1.5,
    ):
        self.transport = transport
        self.stats = stats or TransferStats()
        self.cancel_token = cancel_token
        self.max_workers = max_workers
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._transfer_logger = transfer_logger
        self._path_locks: dict[Path, asyncio.Lock] = {}

    def _check_cancelled(self) -> None:
        if self.cancel_token:
            self.cancel_token.raise_if_cancelled()

    def _lock_for(self, path: Path) -> asyncio.Lock:
        return self._path_locks.setdefault(path.resolve(), asyncio.Lock())

    async def transfer(
        self,
        links: list[DownloadLink],
        destination_root: str | Path,
        use_structure: bool = False,
        overwrite: bool = False,
    ) -> bool:
        """
        Transfers every link into the destination root.

        Args:
            links: Planned links, processed in order.
            destination_root: Local directory receiving the files.
            use_structure: Recreate the remote folder path under the root.
            overwrite: Replace finished files instead of skipping or renaming.

        Returns:
            True when every link ended downloaded or already satisfied.

        Raises:
            FileSystemFatalError: If a destination file cannot be created.
        """
        root = Path(destination_root)

        if self.max_workers <= 1 or len(links) <= 1:
            all_ok = True
            for link in links:
                ok = await self._transfer_link(link, root, use_structure, overwrite)
                all_ok = all_ok and ok
            return all_ok

        semaphore = asyncio.Semaphore(self.max_workers)

        async def _bounded(link: DownloadLink) -> bool:
            async with semaphore:
                return await self._transfer_link(link, root, use_structure, overwrite)

        tasks = [asyncio.create_task(_bounded(link)) for link in links]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return all(results)

    async def _transfer_link(
        self, link: DownloadLink, root: Path, use_structure: bool, overwrite: bool
    ) -> bool:
        if link.url is None:
            self.stats.links_unavailable += 1
            return True

        destination = root / (link.destination_path if use_structure else link.name)
        async with self._lock_for(destination):
            return await self._reconcile_and_download(
                link, destination, use_structure, overwrite
            )

    async def _reconcile_and_download(
        self, link: DownloadLink, destination: Path, use_structure: bool, overwrite: bool
    ) -> bool:
        try:
            create_dir(destination.parent)
        except OSError as e:
            raise FileSystemFatalError(
                f"Could not create folder '{destination.parent}': {e}"
            ) from e

        if destination.exists():
            if use_structure and not overwrite:
                self.stats.files_skipped_exists += 1
                log.info(f"[dim]○ '{escape(link.name)}' already downloaded, skipping.[/dim]")
                if self._transfer_logger:
                    self._transfer_logger.file_skipped(link.name, reason="exists")
                return True

            if overwrite:
                log.info(f"Overwriting '{escape(str(destination))}'")
                try:
                    destination.unlink()
                except OSError as e:
                    raise FileSystemFatalError(
                        f"Could not remove '{destination}' for overwrite: {e}"
                    ) from e
                self.stats.files_overwritten += 1
            else:
                return await self._download_renamed(link, destination)

        return await self._download(link, destination)

    async def _download_renamed(self, link: DownloadLink, destination: Path) -> bool:
        # Another worker may claim the same free name before its file exists;
        # the name only counts as free once its lock is held.
        while True:
            renamed = next_available_path(destination)
            async with self._lock_for(renamed):
                if renamed.exists():
                    continue
                self.stats.files_renamed += 1
                log.info(
                    f"'{escape(destination.name)}' exists, "
                    f"saving as '{escape(renamed.name)}'"
                )
                if self._transfer_logger:
                    self._transfer_logger.file_renamed(destination.name, renamed.name)
                return await self._download(link, renamed)

    async def _download(self, link: DownloadLink, destination: Path) -> bool:
        """Starts, resumes or reconciles one `.part` file and finalizes it."""
        partial = part_path(destination)
        expected = link.expected_size

        if partial.exists():
            offset = partial.stat().st_size
            if offset >= expected:
                os.replace(partial, destination)
                self.stats.files_reconciled += 1
                log.info(f"[dim]○ '{escape(link.name)}' already complete, finalized.[/dim]")
                if self._transfer_logger:
                    self._transfer_logger.file_skipped(link.name, reason="part_complete")
                return True

            self.stats.files_resumed += 1
            log.info(
                f"Resuming '{escape(link.name)}' at {format_size(offset)}"
                f" of {format_size(expected)}"
            )
            if self._transfer_logger:
                self._transfer_logger.file_resumed(link.name, offset, expected)
        else:
            log.info(
                f"Downloading '{escape(link.name)}' ({format_size(expected)})"
                f" from [dim]{escape(shorten_url(link.url))}[/dim]"
            )

        started_at = time.monotonic()
        status = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                status = await self._stream_to_part(link, partial, expected)
                break
            except TransportError as e:
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{link.name}' failed: {e}."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
                    self._check_cancelled()
                    continue
                self.stats.files_failed += 1
                self.stats.failed_urls.append(link.url)
                log.error(f"[red]✗ Could not download '{escape(link.name)}': {e}[/red]")
                if self._transfer_logger:
                    self._transfer_logger.file_failed(link.name, str(e), attempt)
                return False

        if status == 404:
            partial.unlink(missing_ok=True)
            self.stats.files_not_found += 1
            error = TransferNotFoundError(f"'{link.name}' not found (HTTP 404)")
            log.warning(f"[yellow]✗ {escape(str(error))}.[/yellow]")
            if self._transfer_logger:
                self._transfer_logger.file_not_found(link.name, status)
            return False

        if status >= 400:
            self.stats.files_failed += 1
            self.stats.failed_urls.append(link.url)
            log.error(f"[red]✗ '{escape(link.name)}' failed with HTTP {status}.[/red]")
            if self._transfer_logger:
                self._transfer_logger.file_failed(link.name, f"HTTP {status}", 1)
            return False

        os.replace(partial, destination)
        self.stats.files_downloaded += 1
        size = destination.stat().st_size
        elapsed = time.monotonic() - started_at
        speed = format_speed(size / elapsed) if elapsed > 0 else format_size(size)
        log.info(f"[green]✓ {escape(link.name)}[/green] [dim]({speed})[/dim]")
        if self._transfer_logger:
            self._transfer_logger.file_downloaded(link.name, size, elapsed)
        return True

    async def _stream_to_part(
        self, link: DownloadLink, partial: Path, expected: int
    ) -> int:
        """
        Appends the remaining bytes of a file to its `.part` file.

        Returns:
            The HTTP status code of the file response.
        """
        offset = partial.stat().st_size if partial.exists() else 0
        headers = {"Icy-MetaData": "1", "Range": range_header(offset, expected)}
        self._check_cancelled()

        # The .part file is only touched once the server answers with a body.
        async with self.transport.open_stream(link.url, headers) as response:
            if response.status >= 400:
                return response.status

            try:
                handle = await aiofiles.open(partial, "ab")
            except OSError as e:
                raise FileSystemFatalError(
                    f"Could not create file '{partial}' for download: {e}"
                ) from e

            try:
                if offset and response.status == 200:
                    log.debug(f"Range ignored for '{link.name}', restarting from zero.")
                    await handle.truncate(0)

                async for chunk in response.iter_chunks(self.CHUNK_SIZE):
                    self._check_cancelled()
                    await handle.write(chunk)
                    self.stats.total_bytes_downloaded += len(chunk)
            finally:
                await handle.close()
            return response.status
