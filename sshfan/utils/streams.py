"""Stream adapters for command input and output.

Commands accept plain file-like objects (``io.BytesIO``, open files) as well
as asyncio-style objects whose ``read``/``write`` are coroutines. The helpers
here hide the difference so the session copy loops can treat them alike.
"""

import asyncio
import inspect
import io
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 32768
DEFAULT_MAX_TOKEN_SIZE = 65536


async def read_chunk(source: Any, size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Read up to ``size`` bytes from a sync or async source.

    Coroutine sources are awaited. Blocking sources (pipes, ``sys.stdin``)
    are read in the default executor so the event loop keeps running;
    ``read1`` is preferred so partial chunks are returned as they arrive.

    Returns:
        The bytes read, or ``b""`` at end of stream.
    """
    if inspect.iscoroutinefunction(source.read):
        data = await source.read(size)
    else:
        read = getattr(source, "read1", None) or source.read
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, read, size)
        if inspect.isawaitable(data):
            data = await data
    if not data:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


async def write_chunk(target: Any, data: bytes) -> None:
    """Write ``data`` to a sync or async sink.

    Text sinks (``io.TextIOBase``) receive decoded text. Sinks exposing
    ``drain()`` (asyncio.StreamWriter and friends) are drained after each
    write.
    """
    if isinstance(target, io.TextIOBase):
        result = target.write(data.decode("utf-8", errors="replace"))
    else:
        result = target.write(data)
    if inspect.isawaitable(result):
        await result

    drain = getattr(target, "drain", None)
    if drain is not None and inspect.iscoroutinefunction(drain):
        await drain()


class BufferedReader:
    """In-memory reader fed from the outside.

    Data is appended with :meth:`feed` and end of stream is signalled with
    :meth:`finish`. Readers block in :meth:`read` until data, EOF or an error
    is available.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._eof = False
        self._error: BaseException | None = None
        self._closed = False
        self._data_ready = asyncio.Event()

    @property
    def at_eof(self) -> bool:
        """True once the buffer is empty and no more data will arrive."""
        return self._eof and not self._buffer

    def feed(self, data: bytes) -> None:
        if self._closed or self._eof or not data:
            return
        self._buffer.extend(data)
        self._data_ready.set()

    def finish(self, error: BaseException | None = None) -> None:
        if self._eof:
            return
        self._eof = True
        self._error = error
        self._data_ready.set()

    def _before_wait(self) -> None:
        """Hook run before blocking for more data."""

    def _make_error(self, error: BaseException) -> BaseException:
        return error

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes (all buffered bytes when ``n < 0``).

        Returns ``b""`` at end of stream. If the stream finished with an
        error, the error is raised once the buffered bytes are consumed.
        """
        while not self._buffer and not self._eof and not self._closed:
            self._before_wait()
            self._data_ready.clear()
            await self._data_ready.wait()

        if self._buffer:
            if n < 0 or n >= len(self._buffer):
                data = bytes(self._buffer)
                self._buffer.clear()
            else:
                data = bytes(self._buffer[:n])
                del self._buffer[:n]
            return data

        if self._error is not None and not self._closed:
            raise self._make_error(self._error)
        return b""

    async def close(self) -> None:
        """Stop receiving data and drop anything buffered."""
        self._closed = True
        self._buffer.clear()
        self._data_ready.set()


class PipeReader(BufferedReader):
    """Reading end of an in-memory :func:`pipe`."""


class PipeWriter:
    """Writing end of an in-memory :func:`pipe`."""

    def __init__(self, reader: PipeReader) -> None:
        self._reader = reader
        self.closed = False

    def write(self, data: bytes | str) -> int:
        if self.closed:
            raise ValueError("write to closed pipe")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._reader.feed(data)
        return len(data)

    def close(self, error: BaseException | None = None) -> None:
        """Signal end of stream (or ``error``) to the reading end."""
        if self.closed:
            return
        self.closed = True
        self._reader.finish(error)


def pipe() -> tuple[PipeReader, PipeWriter]:
    """Create a connected in-memory pipe.

    Writes never block; data is buffered until the reader consumes it. Wire
    the reader into ``Command.stdin`` to feed a remote process, or the
    writer into ``Command.stdout``/``stderr`` to consume its output.

    Returns:
        Tuple of (reader, writer).
    """
    reader = PipeReader()
    return reader, PipeWriter(reader)


class LineWriter:
    """Writer that scans written bytes into lines.

    The callback receives every complete line without its line terminator.
    A trailing partial line is delivered on :meth:`close`.

    Args:
        callback: Called with each line as bytes.
        max_token_size: Longest line accepted before raising ``ValueError``.
    """

    def __init__(
        self,
        callback: Callable[[bytes], Any],
        max_token_size: int = DEFAULT_MAX_TOKEN_SIZE,
    ) -> None:
        self.callback = callback
        self.max_token_size = max_token_size
        self._pending = bytearray()

    def write(self, data: bytes | str) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._pending.extend(data)

        while True:
            index = self._pending.find(b"\n")
            if index < 0:
                break
            line = bytes(self._pending[:index])
            del self._pending[: index + 1]
            self._emit(line)

        if len(self._pending) > self.max_token_size:
            size = len(self._pending)
            self._pending.clear()
            raise ValueError(
                f"line exceeds max token size ({size} > {self.max_token_size})"
            )
        return len(data)

    def _emit(self, line: bytes) -> None:
        if line.endswith(b"\r"):
            line = line[:-1]
        self.callback(line)

    def close(self) -> None:
        """Deliver any buffered partial line."""
        if self._pending:
            line = bytes(self._pending)
            self._pending.clear()
            self._emit(line)
