"""
A cooperative cancellation token checked at every network round-trip and
every chunk write.
"""

import asyncio

from chomikuj_cli.exceptions import OperationCancelledError


class CancellationToken:
    """Signals a running session or transfer to stop at the next checkpoint."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Operation cancelled.") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation cancelled.")

    async def wait(self) -> None:
        await self._event.wait()
