"""Fan one input stream out to many independently paced readers.

The source is read exactly once by a single pump task, started by the first
read on any reader. Every chunk is appended to the private buffer of each
open reader, so a reader that is slow or never read does not hold back the
others.
"""

import asyncio
import logging
from typing import Any

from sshfan.services.errors import BroadcastError
from sshfan.utils.streams import DEFAULT_CHUNK_SIZE, BufferedReader, read_chunk

logger = logging.getLogger(__name__)


class BroadcastReader(BufferedReader):
    """One duplicate of a broadcast source."""

    def __init__(self, broadcaster: "Broadcaster") -> None:
        super().__init__()
        self._broadcaster = broadcaster

    def _before_wait(self) -> None:
        self._broadcaster._ensure_pump()

    def _make_error(self, error: BaseException) -> BaseException:
        wrapped = BroadcastError(f"broadcast source failed: {error}")
        wrapped.__cause__ = error
        return wrapped

    async def close(self) -> None:
        """Detach from the broadcaster and drop buffered data."""
        await super().close()
        self._broadcaster._detach(self)


class Broadcaster:
    """Replicates a single source to any number of readers.

    Example:
        broadcaster = Broadcaster(io.BytesIO(b"script"))
        first, second = broadcaster.new_reader(), broadcaster.new_reader()
        assert await first.read() == await second.read() == b"script"
    """

    def __init__(self, source: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize the broadcaster.

        Args:
            source: Sync or async readable; consumed only by this broadcaster
            chunk_size: Maximum bytes requested from the source per read
        """
        self.source = source
        self.chunk_size = chunk_size
        self._readers: list[BroadcastReader] = []
        self._pump: asyncio.Task[None] | None = None
        self._finished = False
        self._error: BaseException | None = None
        self.bytes_read = 0

    @property
    def reader_count(self) -> int:
        """Number of attached readers."""
        return len(self._readers)

    def new_reader(self) -> BroadcastReader:
        """Create a reader receiving everything the source produces from now on.

        A reader created after the source is exhausted reports end of stream
        (or the source error) immediately.
        """
        reader = BroadcastReader(self)
        if self._finished:
            reader.finish(self._error)
        else:
            if self.bytes_read:
                logger.debug(
                    "Reader attached after %d bytes were already broadcast",
                    self.bytes_read,
                )
            self._readers.append(reader)
        return reader

    def _detach(self, reader: BroadcastReader) -> None:
        if reader in self._readers:
            self._readers.remove(reader)

    def _ensure_pump(self) -> None:
        if self._pump is None and not self._finished:
            self._pump = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        error: BaseException | None = None
        try:
            while True:
                chunk = await read_chunk(self.source, self.chunk_size)
                if not chunk:
                    break
                self.bytes_read += len(chunk)
                for reader in list(self._readers):
                    reader.feed(chunk)
                # Let readers run between chunks of a synchronous source
                await asyncio.sleep(0)
        except Exception as e:
            logger.warning("Broadcast source failed after %d bytes: %s", self.bytes_read, e)
            error = e

        self._finished = True
        self._error = error
        for reader in list(self._readers):
            reader.finish(error)
        logger.debug(
            "Broadcast source exhausted (%d bytes, %d readers)",
            self.bytes_read,
            len(self._readers),
        )

    async def close(self) -> None:
        """Stop reading the source and end every attached reader."""
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
            await asyncio.gather(self._pump, return_exceptions=True)
        if not self._finished:
            self._finished = True
            for reader in list(self._readers):
                reader.finish()
