"""Run one command on many hosts.

Fan-out Strategy:
- One CommandSession per pool client, each with its own connection
- Input is read once through a Broadcaster; each session gets a private reader
- Output and error sinks are shared as given; synchronizing them is the
  caller's concern

Aggregation:
- Every batch operation runs the per-host operations concurrently and returns
  only after all of them finished
- Reports are index-aligned with the pool's clients at session creation
- A report keeps the first error recorded (start, then signal, then wait)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from datetime import datetime

from sshfan.models import Command, CommandReport, Signal
from sshfan.services.broadcast import Broadcaster, BroadcastReader
from sshfan.services.client import SSHClient
from sshfan.services.errors import SessionNotStartedError
from sshfan.services.session import CommandSession
from sshfan.utils.streams import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)


def _elapsed_ms(start: datetime | None, end: datetime | None) -> float:
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds() * 1000


class SSHPool:
    """Ordered collection of SSH clients.

    The pool does no locking: add clients before creating command sessions,
    not while a pool command session is running.
    """

    def __init__(self, *clients: SSHClient, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize pool.

        Args:
            *clients: Initial clients, in report order
            chunk_size: Read size used when broadcasting command input
        """
        self._clients: list[SSHClient] = list(clients)
        self.chunk_size = chunk_size

    def add_client(self, client: SSHClient) -> None:
        """Append a client; it receives the next report index."""
        self._clients.append(client)
        logger.debug("Added %s to pool (hosts=%d)", client.address, len(self._clients))

    @property
    def clients(self) -> list[SSHClient]:
        """Clients in report order."""
        return list(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[SSHClient]:
        return iter(list(self._clients))

    def new_command_session(self, command: Command) -> "PoolCommandSession":
        """Create one unstarted session per client running ``command``.

        If the command has input, it is broadcast so that every host reads
        the complete stream. ``command`` itself is not modified.
        """
        broadcaster = None
        if command.stdin is not None:
            broadcaster = Broadcaster(command.stdin, chunk_size=self.chunk_size)

        sessions = []
        for client in self._clients:
            if broadcaster is not None:
                host_command = command.clone(stdin=broadcaster.new_reader())
            else:
                host_command = command.clone()
            sessions.append(client.new_command_session(host_command))

        return PoolCommandSession(command, sessions, broadcaster=broadcaster)


class PoolCommandSession:
    """Start, signal and wait on a batch of command sessions.

    Attributes:
        command: Command the batch was created from
        sessions: One session per pool client, in pool order
        reports: One report per session, filled in by start
        started_at: When the batch started
        ended_at: When the batch finished waiting
    """

    def __init__(
        self,
        command: Command,
        sessions: list[CommandSession],
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self.command = command
        self.sessions = sessions
        self.reports: list[CommandReport] = []
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None
        self._broadcaster = broadcaster

    @property
    def failed(self) -> list[CommandReport]:
        """Reports that carry an error."""
        return [report for report in self.reports if report.error is not None]

    def _require_started(self) -> None:
        if len(self.reports) != len(self.sessions):
            raise SessionNotStartedError("pool command session not started")

    async def _for_each(
        self,
        operation: Callable[[CommandSession], Awaitable[None]],
    ) -> list[BaseException | None]:
        """Run ``operation`` on every session concurrently.

        Returns:
            Per-session exception or None, index-aligned with sessions
        """

        async def call(session: CommandSession) -> BaseException | None:
            try:
                await operation(session)
            except Exception as e:
                return e
            return None

        return list(await asyncio.gather(*(call(s) for s in self.sessions)))

    async def start(self) -> None:
        """Start every session concurrently and record one report each.

        Raises:
            RuntimeError: If the batch was already started
        """
        if self.reports:
            raise RuntimeError("pool command session already started")

        self.started_at = datetime.now()
        logger.info(
            "Starting %r on hosts=%d",
            self.command.command or self.command.executor,
            len(self.sessions),
        )

        errors = await self._for_each(lambda s: s.start())

        for session, error in zip(self.sessions, errors):
            stdin = session.command.stdin
            if error is not None and isinstance(stdin, BroadcastReader):
                # stop buffering input for a host that will never read it
                await stdin.close()
            self.reports.append(
                CommandReport(
                    session=session,
                    command=session.command,
                    error=error,
                    started_at=session.started_at,
                    ended_at=session.ended_at,
                )
            )

        failed = sum(1 for error in errors if error is not None)
        if failed:
            logger.warning("Start failed on %d of %d hosts", failed, len(self.sessions))

    async def wait(self) -> list[CommandReport]:
        """Wait for every session and return the reports.

        A wait error is recorded only if the report has no error yet; the
        end time is always refreshed from the session.

        Raises:
            SessionNotStartedError: If start was not called
        """
        self._require_started()

        errors = await self._for_each(lambda s: s.wait())

        for report, error in zip(self.reports, errors):
            report.record_error(error)
            report.ended_at = report.session.ended_at

        if self._broadcaster is not None:
            await self._broadcaster.close()

        self.ended_at = datetime.now()
        failed = len(self.failed)
        log = logger.warning if failed else logger.info
        log(
            "Completed on hosts=%d failed=%d in %.1fms",
            len(self.reports),
            failed,
            _elapsed_ms(self.started_at, self.ended_at),
        )
        return self.reports

    async def run(self) -> list[CommandReport]:
        """Start then wait; returns the final reports."""
        await self.start()
        return await self.wait()

    async def signal(self, sig: Signal | str | int) -> list[CommandReport]:
        """Signal every session, then wait for all of them to finish.

        Signal errors are recorded first-wins and never skip the wait.

        Raises:
            SessionNotStartedError: If start was not called
        """
        self._require_started()
        logger.info("Sending signal %s to hosts=%d", sig, len(self.sessions))

        errors = await self._for_each(lambda s: s.signal(sig))
        for report, error in zip(self.reports, errors):
            report.record_error(error)

        return await self.wait()

    async def close(self) -> None:
        """Close every session that was started.

        Sessions whose start failed are skipped. Close errors are recorded
        first-wins.
        """
        self._require_started()

        async def close_started(session: CommandSession) -> None:
            if session.started:
                await session.close()

        errors = await self._for_each(close_started)
        for report, error in zip(self.reports, errors):
            report.record_error(error)

        if self._broadcaster is not None:
            await self._broadcaster.close()
