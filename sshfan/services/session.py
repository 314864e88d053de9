"""Lifecycle of one remote command invocation.

A session dials its host, opens a session channel, sets the environment and
starts the command line. ``wait``, ``signal`` and ``close`` block until the
session is ready (the remote process object exists) so callers may issue
them while ``start`` is still connecting.

State transitions:
    CREATED -> DIALING -> AUTHENTICATED -> READY -> RUNNING -> EXITED|FAILED
    DIALING|AUTHENTICATED -> FAILED
    READY|RUNNING -> CLOSED
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

import asyncssh

from sshfan.models import Command, SessionState, Signal, signal_name
from sshfan.services.errors import (
    NegotiationError,
    RemoteExitError,
    SessionNotStartedError,
    SignalError,
)
from sshfan.utils.streams import DEFAULT_CHUNK_SIZE, read_chunk, write_chunk

if TYPE_CHECKING:
    from sshfan.services.client import SSHClient

logger = logging.getLogger(__name__)


def _validate_environment(env: dict[str, str]) -> None:
    for name, value in env.items():
        if not name or "=" in name or "\0" in name:
            raise ValueError(f"invalid environment variable name {name!r}")
        if "\0" in value:
            raise ValueError(f"environment variable {name} contains NUL")


class CommandSession:
    """Runs one command on one host.

    Attributes:
        client: Endpoint the session connects to
        command: Command being run
        state: Current lifecycle state
        started_at: When the session started (reset when the remote
            process is launched)
        ended_at: When the last start/wait finished
    """

    def __init__(self, client: "SSHClient", command: Command) -> None:
        self.client = client
        self.command = command
        self.state = SessionState.CREATED
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None

        self._conn: asyncssh.SSHClientConnection | None = None
        self._process: asyncssh.SSHClientProcess | None = None
        self._ready = asyncio.Event()
        self._stdin_task: asyncio.Task[None] | None = None
        self._output_tasks: list[asyncio.Task[None]] = []

    def __repr__(self) -> str:
        return f"CommandSession({self.client.address!r}, state={self.state.value})"

    @property
    def ready(self) -> bool:
        """True once start has created the remote process or given up."""
        return self._ready.is_set()

    @property
    def started(self) -> bool:
        """True if the remote process was launched."""
        return self._process is not None

    def _set_state(self, state: SessionState) -> None:
        if self.state.is_terminal:
            return
        logger.debug(
            "%s: %s -> %s", self.client.address, self.state.value, state.value
        )
        self.state = state

    async def start(self) -> None:
        """Connect and launch the remote command.

        Raises:
            DialError: If connecting or authenticating fails
            NegotiationError: If the environment or the start request is
                rejected
        """
        address = self.client.address
        self.started_at = datetime.now()
        try:
            self._set_state(SessionState.DIALING)
            self._conn = await self.client.connect()
            self._set_state(SessionState.AUTHENTICATED)

            env = self.command.environment()
            try:
                _validate_environment(env)
                command_line = self.command.command_line()
            except ValueError as e:
                raise NegotiationError(address, str(e)) from e

            try:
                self._process = await self._conn.create_process(
                    command_line,
                    env=env or None,
                    encoding=None,
                )
            except (asyncssh.Error, OSError) as e:
                raise NegotiationError(address, f"start rejected: {e}") from e

            self._set_state(SessionState.READY)
            self._ready.set()

            self._wire_streams(self._process)
            self.started_at = datetime.now()
            self._set_state(SessionState.RUNNING)
            logger.debug("%s: started %r", address, command_line)
        except Exception as e:
            logger.warning("%s: start failed: %s", address, e)
            self._set_state(SessionState.FAILED)
            await self._close_connection()
            raise
        finally:
            self.ended_at = datetime.now()
            # Wake callers parked in wait/signal/close even when start failed
            self._ready.set()

    def _wire_streams(self, process: asyncssh.SSHClientProcess) -> None:
        loop = asyncio.get_running_loop()
        self._stdin_task = loop.create_task(
            self._copy_input(self.command.stdin, process.stdin)
        )
        self._output_tasks = [
            loop.create_task(self._copy_output(process.stdout, self.command.stdout)),
            loop.create_task(self._copy_output(process.stderr, self.command.stderr)),
        ]

    async def _copy_input(self, source: Any, writer: asyncssh.SSHWriter) -> None:
        if source is not None:
            while True:
                data = await read_chunk(source, DEFAULT_CHUNK_SIZE)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
        writer.write_eof()

    async def _copy_output(self, reader: asyncssh.SSHReader, target: Any) -> None:
        # Keep draining after a sink failure so the channel is not stalled
        error: Exception | None = None
        while True:
            data = await reader.read(DEFAULT_CHUNK_SIZE)
            if not data:
                break
            if target is None or error is not None:
                continue
            try:
                await write_chunk(target, data)
            except Exception as e:
                logger.warning("%s: output sink failed: %s", self.client.address, e)
                error = e
        if error is not None:
            raise error

    def _require_process(self) -> asyncssh.SSHClientProcess:
        if self._process is None:
            raise SessionNotStartedError(
                f"{self.client.address}: ssh session not started"
            )
        return self._process

    async def wait(self) -> None:
        """Wait for the remote command to finish.

        Raises:
            SessionNotStartedError: If start failed before launching
            RemoteExitError: If the command exited non-zero, was killed by a
                signal, or the channel closed without an exit status
            BroadcastError: If the shared input source failed
        """
        try:
            await self._ready.wait()
            process = self._require_process()
            try:
                # both copies must finish before a failure is raised
                results = await asyncio.gather(
                    *self._output_tasks, return_exceptions=True
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result
                await process.wait_closed()
            except Exception:
                self._set_state(SessionState.FAILED)
                raise
            finally:
                input_error = await self._finish_input()

            self._check_exit(process)
            if input_error is not None:
                self._set_state(SessionState.FAILED)
                raise input_error
            self._set_state(SessionState.EXITED)
        finally:
            self.ended_at = datetime.now()
            await self._close_connection()

    def _check_exit(self, process: asyncssh.SSHClientProcess) -> None:
        exit_signal = process.exit_signal
        exit_status = process.exit_status
        if exit_signal:
            self._set_state(SessionState.FAILED)
            raise RemoteExitError(self.client.address, exit_signal=exit_signal[0])
        if exit_status is None or exit_status != 0:
            self._set_state(SessionState.FAILED)
            raise RemoteExitError(self.client.address, exit_status=exit_status)

    async def _finish_input(self) -> Exception | None:
        """Stop the input copy and return its error, if it matters."""
        task = self._stdin_task
        if task is None:
            return None
        if not task.done():
            task.cancel()
        (result,) = await asyncio.gather(task, return_exceptions=True)
        if not isinstance(result, Exception):
            return None
        # Remote side hanging up on its stdin is not a failure
        if isinstance(result, (asyncssh.Error, BrokenPipeError, ConnectionError)):
            logger.debug("%s: input copy ended: %s", self.client.address, result)
            return None
        return result

    async def run(self) -> None:
        """Start the command and wait for it; wait is skipped if start fails."""
        await self.start()
        await self.wait()

    async def signal(self, sig: Signal | str | int) -> None:
        """Send a signal to the remote process without waiting for it to exit.

        Raises:
            SessionNotStartedError: If start failed before launching
            SignalError: If the signal request cannot be sent
        """
        await self._ready.wait()
        process = self._require_process()
        name = signal_name(sig)
        logger.debug("%s: sending signal %s", self.client.address, name)
        try:
            process.send_signal(name)
        except (asyncssh.Error, OSError) as e:
            raise SignalError(self.client.address, name, e) from e

    async def close(self) -> None:
        """Close the session channel and its connection.

        Raises:
            SessionNotStartedError: If start failed before launching
        """
        await self._ready.wait()
        process = self._require_process()
        process.close()
        self._set_state(SessionState.CLOSED)
        await self._close_connection()

    async def _close_connection(self) -> None:
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        conn.close()
        await conn.wait_closed()
