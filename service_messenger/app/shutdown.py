"""
Process-wide shutdown signal for the Messenger.
"""

import asyncio

from shared.logging import get_logger


class ShutdownSignal:
    """One-shot, broadcast cancellation signal.

    Closing fires it for every waiter at once. Only the first ``close`` has
    any effect; repeated calls return False and never raise.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.logger = get_logger("messenger.shutdown")

    @property
    def closed(self) -> bool:
        return self._event.is_set()

    def close(self) -> bool:
        """Fire the signal. Returns True only for the call that fired it."""
        if self._event.is_set():
            self.logger.debug("Shutdown signal already closed")
            return False
        self._event.set()
        self.logger.info("Shutdown signal closed")
        return True

    async def wait(self):
        """Suspend until the signal is closed."""
        await self._event.wait()
