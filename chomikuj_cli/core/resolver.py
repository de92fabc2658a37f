"""
First protocol phase: maps site URLs to ChomikBox file metadata, and finds
the subfolders of a folder page for the recursive crawl.
"""

import logging
from typing import Optional

from chomikuj_cli.api import codec
from chomikuj_cli.api.session import ChomikboxSession
from chomikuj_cli.models.config import DEFAULT_BASE_URL
from chomikuj_cli.models.files import FileDescriptor
from chomikuj_cli.utils.path import has_file_extension, service_lookup_key
from chomikuj_cli.utils.structured_logger import SessionLogger

log = logging.getLogger(__name__)


class Resolver:
    """Resolves folder and file URLs into FileDescriptors."""

    def __init__(
        self,
        session: ChomikboxSession,
        base_url: str = DEFAULT_BASE_URL,
        session_logger: Optional[SessionLogger] = None,
    ):
        self.session = session
        self.base_url = base_url
        self._session_logger = session_logger

    async def resolve(self, urls: list[str], recursive: bool) -> list[FileDescriptor]:
        """
        Resolves a batch of URLs into file metadata.

        When the batch holds more than one URL, every URL without a file
        extension is a folder and is resolved on its own, since one Download
        call cannot mix folder and file lookups. Folder results come first,
        followed by the batch results, in discovery order.

        Args:
            urls: Site URLs of files or folders.
            recursive: Passed through to the folder lookups; the subfolder
                crawl itself is driven by the DownloadManager.

        Returns:
            The resolved descriptors; empty when the service found nothing.

        Raises:
            AuthenticationError: If the session cannot log in.
        """
        await self.session.ensure_authenticated()

        log.debug(f"Resolving {len(urls)} URL(s) (recursive={recursive})")
        descriptors: list[FileDescriptor] = []
        file_urls: list[str] = []

        for url in urls:
            if len(urls) > 1 and not has_file_extension(url):
                log.debug(f"'{url}' is a folder, resolving it separately.")
                descriptors.extend(await self.resolve([url], recursive))
            else:
                file_urls.append(url)

        if not file_urls:
            return descriptors

        entries = [
            codec.DownloadRequestEntry(id=service_lookup_key(url, self.base_url))
            for url in file_urls
        ]
        payload = await self.session.download_call(entries)

        records = codec.decode_file_entries(payload, codec.FILE_ENTRY_SCHEMA)
        log.info(f"  Received {len(records)} file record(s).")

        for record in records:
            descriptor = self._to_descriptor(record)
            self.session.cache_descriptor(descriptor)
            descriptors.append(descriptor)

        return descriptors

    @staticmethod
    def _to_descriptor(record: dict[str, Optional[str]]) -> FileDescriptor:
        agreement = record["agreement"] or ""
        cost = record.get("cost")
        return FileDescriptor(
            id=record["id"],
            agreement_name=agreement,
            cost=None if agreement == "small" or cost is None else int(cost),
            real_id=record.get("real_id") or "",
            name=record["name"],
            size_bytes=int(record["size"]),
        )

    async def discover_subfolders(self, url: str) -> list[str]:
        """Returns the absolute URLs of the subfolders listed on a folder page."""
        page = await self.session.fetch_page(url)
        subfolders = codec.decode_folder_links(page, self.base_url)
        if self._session_logger:
            self._session_logger.folder_crawled(url, len(subfolders))
        return subfolders
