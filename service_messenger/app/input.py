"""
Line input for the Messenger.
"""

import asyncio
import threading
from typing import Optional, TextIO, Union

from shared.errors import InputExhausted
from shared.logging import get_logger

_EOF = object()


class LineReader:
    """Reads lines from a blocking text stream without blocking the event loop.

    A daemon thread does the blocking reads, so an interpreter exit is never
    held up waiting on a terminal that has no more input coming.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.logger = get_logger("messenger.input")
        self._queue: "asyncio.Queue[Union[str, BaseException, object]]" = asyncio.Queue()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def readline(self) -> str:
        """Next line without its line ending; raises ``InputExhausted`` at EOF or on a read error."""
        if self._thread is None:
            self._start()

        item = await self._queue.get()
        if item is _EOF:
            raise InputExhausted()
        if isinstance(item, BaseException):
            raise InputExhausted("Error reading line from input", cause=item)
        return item.rstrip("\r\n")

    def _start(self):
        self._loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._read_forever, name="messenger-stdin", daemon=True)
        self._thread.start()

    def _read_forever(self):
        while True:
            try:
                line = self.stream.readline()
            except (OSError, ValueError) as e:
                self._hand_over(e)
                return
            if not line:
                self._hand_over(_EOF)
                return
            if not self._hand_over(line):
                return

    def _hand_over(self, item) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed; nobody is left to read
            return False
        return True
