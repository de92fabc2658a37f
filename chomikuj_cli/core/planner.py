"""
Second protocol phase: exchanges resolved file metadata, together with the
cost acknowledgment, for signed download URLs.
"""

import logging
from pathlib import PurePosixPath
from typing import Iterable, Optional

from rich.markup import escape

from chomikuj_cli.api import codec
from chomikuj_cli.api.session import ChomikboxSession
from chomikuj_cli.exceptions import LinkUnavailableError
from chomikuj_cli.models.files import DownloadLink, FileDescriptor
from chomikuj_cli.models.stats import TransferStats
from chomikuj_cli.utils.path import matches_extension, safe_file_name, safe_remote_path
from chomikuj_cli.utils.structured_logger import TransferLogger

log = logging.getLogger(__name__)

# The service only answers reliably with one entry per planning call.
BATCH_SIZE = 1


class DownloadPlanner:
    """Turns FileDescriptors into DownloadLinks, one service call per batch."""

    def __init__(
        self,
        session: ChomikboxSession,
        stats: Optional[TransferStats] = None,
        transfer_logger: Optional[TransferLogger] = None,
    ):
        self.session = session
        self.stats = stats or TransferStats()
        self._transfer_logger = transfer_logger

    async def plan(
        self, descriptors: list[FileDescriptor], extensions: Iterable[str] = ()
    ) -> list[DownloadLink]:
        """
        Requests signed URLs for the given files.

        Files whose extension is not allowed are dropped before any cost is
        acknowledged. Files the service returns without a URL are dropped and
        reported as unavailable.

        Args:
            descriptors: Output of the resolution phase.
            extensions: Allowed extensions without the dot; empty allows all.

        Returns:
            One DownloadLink per downloadable file, in input order.
        """
        allowed = set(extensions)
        wanted = []
        for descriptor in descriptors:
            if matches_extension(descriptor.name, allowed):
                wanted.append(descriptor)
            else:
                self.stats.files_skipped_extension += 1
                log.debug(f"Skipping '{descriptor.name}': extension not allowed.")

        links: list[DownloadLink] = []
        total_batches = (len(wanted) + BATCH_SIZE - 1) // BATCH_SIZE
        for index in range(0, len(wanted), BATCH_SIZE):
            batch = wanted[index : index + BATCH_SIZE]
            log.debug(f"Planning batch {index // BATCH_SIZE + 1}/{total_batches}")
            links.extend(await self._plan_batch(batch, allowed))
        return links

    async def _plan_batch(
        self, batch: list[FileDescriptor], allowed: set[str]
    ) -> list[DownloadLink]:
        entries = [
            codec.DownloadRequestEntry(
                id=descriptor.id,
                agreement_name=descriptor.agreement_name,
                cost=descriptor.cost,
            )
            for descriptor in batch
        ]
        payload = await self.session.download_call(entries)

        remote_path = safe_remote_path(codec.decode_global_path(payload))
        by_id = {descriptor.id: descriptor for descriptor in batch}

        links = []
        for record in codec.decode_download_links(payload):
            descriptor = self._match_descriptor(record, by_id)
            if descriptor is None:
                log.debug(f"Ignoring unrequested entry {record.get('id')}")
                continue

            name = safe_file_name(record["name"] or descriptor.name)
            if not matches_extension(name, allowed):
                self.stats.files_skipped_extension += 1
                continue

            if record["url"] is None:
                self.stats.links_unavailable += 1
                error = LinkUnavailableError(f"No download link for '{name}'")
                log.warning(f"[yellow]{escape(str(error))}, skipping.[/yellow]")
                if self._transfer_logger:
                    self._transfer_logger.link_unavailable(descriptor.id, name)
                continue

            destination = PurePosixPath(remote_path, name)
            links.append(
                DownloadLink(
                    source_file=descriptor,
                    url=record["url"],
                    remote_path=remote_path,
                    destination_path=destination.as_posix(),
                )
            )
        return links

    def _match_descriptor(
        self, record: dict[str, Optional[str]], by_id: dict[str, FileDescriptor]
    ) -> Optional[FileDescriptor]:
        file_id = record.get("id")
        if file_id in by_id:
            return by_id[file_id]
        if file_id in self.session.file_cache:
            return self.session.file_cache[file_id]
        # Single-entry batches answer for the requested file even when the
        # response id uses another form.
        if len(by_id) == 1:
            return next(iter(by_id.values()))
        return None
