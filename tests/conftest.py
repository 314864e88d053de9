"""Shared pytest fixtures.

Provides an in-process SSH exec server that runs each requested command with
``/bin/sh -c`` on the local machine, plus fakes standing in for asyncssh
connections and processes in unit tests.
"""

import asyncio
import getpass
import os
import signal
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncssh
import pytest
import pytest_asyncio

from sshfan.config import ClientConfig
from sshfan.services import SSHClient

# Commands containing this marker are refused by the exec server
REJECT_MARKER = "__reject_exec__"

# SSH signal names to local signals, as delivered by the exec server
SSH_TO_OS_SIGNALS = {
    "ABRT": signal.SIGABRT,
    "ALRM": signal.SIGALRM,
    "FPE": signal.SIGFPE,
    "HUP": signal.SIGHUP,
    "ILL": signal.SIGILL,
    "INT": signal.SIGINT,
    "KILL": signal.SIGKILL,
    "PIPE": signal.SIGPIPE,
    "QUIT": signal.SIGQUIT,
    "SEGV": signal.SIGSEGV,
    "TERM": signal.SIGTERM,
    "USR1": signal.SIGUSR1,
    "USR2": signal.SIGUSR2,
}


class ExecSession(asyncssh.SSHServerSession):
    """Handles env, exec and signal requests on one session channel."""

    def __init__(self) -> None:
        self._chan: Any = None
        self._command = ""
        self._proc: asyncio.subprocess.Process | None = None
        self._stdin: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._pending_signal: str | None = None
        self._task: asyncio.Task[None] | None = None

    def connection_made(self, chan: Any) -> None:
        self._chan = chan

    def shell_requested(self) -> bool:
        return False

    def exec_requested(self, command: str) -> bool:
        if REJECT_MARKER in command:
            return False
        self._command = command
        return True

    def session_started(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def data_received(self, data: bytes, datatype: Any) -> None:
        self._stdin.put_nowait(data)

    def eof_received(self) -> bool:
        self._stdin.put_nowait(None)
        return True

    def signal_received(self, signal_name: str) -> None:
        if self._proc is None:
            self._pending_signal = signal_name
            return
        self._kill(signal_name)

    def connection_lost(self, exc: Exception | None) -> None:
        if self._proc is not None and self._proc.returncode is None:
            self._kill("KILL")

    def _kill(self, signal_name: str) -> None:
        assert self._proc is not None
        try:
            os.killpg(self._proc.pid, SSH_TO_OS_SIGNALS[signal_name])
        except ProcessLookupError:
            pass

    async def _feed_stdin(self) -> None:
        assert self._proc is not None and self._proc.stdin is not None
        stdin = self._proc.stdin
        try:
            while True:
                data = await self._stdin.get()
                if data is None:
                    break
                stdin.write(data)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            pass
        finally:
            stdin.close()

    async def _pump(self, reader: asyncio.StreamReader, write: Callable[[bytes], Any]) -> None:
        while True:
            data = await reader.read(65536)
            if not data:
                break
            write(data)

    async def _run(self) -> None:
        env = {"PATH": os.environ.get("PATH", os.defpath)}
        env.update(self._chan.get_environment())
        self._proc = await asyncio.create_subprocess_exec(
            "/bin/sh",
            "-c",
            self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            start_new_session=True,
        )
        if self._pending_signal is not None:
            self._kill(self._pending_signal)

        feeder = asyncio.get_running_loop().create_task(self._feed_stdin())
        assert self._proc.stdout is not None and self._proc.stderr is not None
        await asyncio.gather(
            self._pump(self._proc.stdout, self._chan.write),
            self._pump(self._proc.stderr, self._chan.write_stderr),
        )
        returncode = await self._proc.wait()
        feeder.cancel()
        await asyncio.gather(feeder, return_exceptions=True)

        if returncode < 0:
            self._chan.exit_with_signal(signal.Signals(-returncode).name[3:])
        else:
            self._chan.exit(returncode)


class ExecServer(asyncssh.SSHServer):
    """Accepts any user without authentication."""

    def begin_auth(self, username: str) -> bool:
        return False

    def session_requested(self) -> ExecSession:
        return ExecSession()


@dataclass
class ExecServerHandle:
    """A running exec server."""

    host: str
    port: int

    def client(self, dial_timeout: float = 2.0) -> SSHClient:
        """Client connecting to this server without host key checks."""
        config = ClientConfig(username=getpass.getuser(), known_hosts=None)
        return SSHClient(self.host, port=self.port, config=config, dial_timeout=dial_timeout)


@pytest.fixture(scope="session")
def server_host_key() -> asyncssh.SSHKey:
    """Host key shared by every exec server."""
    return asyncssh.generate_private_key("ssh-ed25519")


@pytest_asyncio.fixture
async def exec_servers(
    server_host_key: asyncssh.SSHKey,
) -> AsyncIterator[Callable[[int], Awaitable[list[ExecServerHandle]]]]:
    """Factory starting ``count`` exec servers, stopped after the test."""
    running: list[Any] = []

    async def start(count: int) -> list[ExecServerHandle]:
        handles = []
        for _ in range(count):
            server = await asyncssh.create_server(
                ExecServer,
                "127.0.0.1",
                0,
                server_host_keys=[server_host_key],
                encoding=None,
            )
            running.append(server)
            handles.append(ExecServerHandle("127.0.0.1", server.get_port()))
        return handles

    yield start

    for server in running:
        server.close()
        await server.wait_closed()


@pytest_asyncio.fixture
async def exec_server(
    exec_servers: Callable[[int], Awaitable[list[ExecServerHandle]]],
) -> ExecServerHandle:
    """A single running exec server."""
    (handle,) = await exec_servers(1)
    return handle


# Fakes for unit tests


class FakeReader:
    """Stands in for asyncssh.SSHReader, replaying fixed chunks."""

    def __init__(self, chunks: Iterable[bytes] = ()) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        if not self._chunks:
            return b""
        return self._chunks.pop(0)


class FakeWriter:
    """Stands in for asyncssh.SSHWriter, recording what was written."""

    def __init__(self) -> None:
        self.data = bytearray()
        self.eof = False
        self.eof_sent = asyncio.Event()

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def write_eof(self) -> None:
        self.eof = True
        self.eof_sent.set()


class FakeProcess:
    """Stands in for asyncssh.SSHClientProcess."""

    def __init__(
        self,
        stdout: Iterable[bytes] = (),
        stderr: Iterable[bytes] = (),
        exit_status: int | None = 0,
        exit_signal: tuple[str, bool, str, str] | None = None,
    ) -> None:
        self.stdin = FakeWriter()
        self.stdout = FakeReader(stdout)
        self.stderr = FakeReader(stderr)
        self.exit_status = exit_status
        self.exit_signal = exit_signal
        self.signals: list[str] = []
        self.closed = False

    def send_signal(self, name: str) -> None:
        self.signals.append(name)

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        # The remote side exits only after its input ends
        await self.stdin.eof_sent.wait()


def make_connection(process: FakeProcess | None = None) -> MagicMock:
    """Fake asyncssh connection whose create_process returns ``process``."""
    conn = MagicMock()
    conn.create_process = AsyncMock(return_value=process or FakeProcess())
    conn.wait_closed = AsyncMock()
    return conn
