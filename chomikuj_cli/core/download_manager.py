"""
The main orchestrator: resolves the starting URLs, plans and transfers their
files, and crawls into subfolders when asked to.
"""

import logging
from collections import deque
from pathlib import Path
from typing import Optional

from rich.markup import escape

from chomikuj_cli.api.session import ChomikboxSession
from chomikuj_cli.exceptions import TransportError
from chomikuj_cli.models.config import DownloadConfig
from chomikuj_cli.models.stats import TransferStats
from chomikuj_cli.utils.cancellation import CancellationToken
from chomikuj_cli.utils.path import normalize_url
from chomikuj_cli.utils.structured_logger import SessionLogger, TransferLogger

from .planner import DownloadPlanner
from .resolver import Resolver
from .transfer import StreamingTransport, TransferExecutor

log = logging.getLogger(__name__)


class DownloadManager:
    """Orchestrates resolve -> plan -> transfer over a worklist of folder URLs."""

    def __init__(
        self,
        config: DownloadConfig,
        session: ChomikboxSession,
        transport: StreamingTransport,
        cancel_token: Optional[CancellationToken] = None,
        transfer_logger: Optional[TransferLogger] = None,
        session_logger: Optional[SessionLogger] = None,
    ):
        self.config = config
        self.session = session
        self.stats = TransferStats()
        self.resolver = Resolver(session, config.base_url, session_logger)
        self.planner = DownloadPlanner(session, self.stats, transfer_logger)
        self.executor = TransferExecutor(
            transport,
            stats=self.stats,
            transfer_logger=transfer_logger,
            cancel_token=cancel_token,
            max_workers=config.max_workers,
            max_attempts=config.max_attempts,
        )
        self._visited: set[str] = set()

    async def download(self, urls: Optional[list[str]] = None) -> TransferStats:
        """
        Downloads every file reachable from the given URLs.

        Batches are processed depth-first: the subfolders found on a batch's
        pages are handled before the next sibling batch. A URL is processed
        at most once per run.

        Raises:
            AuthenticationError: If the session cannot log in.
            FileSystemFatalError: If a destination file cannot be created.
        """
        urls = list(dict.fromkeys(urls if urls is not None else self.config.source_urls))
        if not urls:
            log.info("No URLs given to download.")
            return self.stats

        await self.session.ensure_authenticated()

        pending: deque[list[str]] = deque([urls])
        while pending:
            batch = self._unvisited(pending.popleft())
            if not batch:
                continue

            subfolder_batches = await self._process_batch(batch)
            pending.extendleft(reversed(subfolder_batches))

        return self.stats

    def _unvisited(self, batch: list[str]) -> list[str]:
        fresh = []
        for url in batch:
            key = normalize_url(url)
            if key in self._visited:
                log.debug(f"Already processed '{url}', skipping.")
                continue
            self._visited.add(key)
            fresh.append(url)
        return fresh

    async def _process_batch(self, batch: list[str]) -> list[list[str]]:
        """Transfers one batch and returns the subfolder batches it revealed."""
        log.info("Downloading files information for:")
        for url in batch:
            log.info(f"  - [dim]{escape(url)}[/dim]")
        self.stats.folders_visited += len(batch)

        try:
            descriptors = await self.resolver.resolve(batch, self.config.recursive)
            self.stats.files_resolved += len(descriptors)
            links = await self.planner.plan(descriptors, self.config.extensions)
        except TransportError as e:
            log.error(f"[red]✗ Could not resolve {len(batch)} URL(s): {e}[/red]")
            self.stats.failed_urls.extend(batch)
            return []

        if links:
            await self.executor.transfer(
                links,
                Path(self.config.destination),
                use_structure=self.config.structure,
                overwrite=self.config.overwrite,
            )
        else:
            log.info("[dim]No downloadable files found.[/dim]")

        if not self.config.recursive:
            return []

        subfolder_batches = []
        for url in batch:
            try:
                subfolders = await self.resolver.discover_subfolders(url)
            except TransportError as e:
                log.warning(f"[yellow]Could not list subfolders of {escape(url)}: {e}[/yellow]")
                continue
            if subfolders:
                log.debug(f"Found {len(subfolders)} subfolder(s) in {url}")
                subfolder_batches.append(subfolders)
        return subfolder_batches
