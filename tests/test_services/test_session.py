"""Tests for CommandSession with a mocked asyncssh connection."""

import asyncio
import io
from unittest.mock import AsyncMock, patch

import asyncssh
import pytest
from conftest import FakeProcess, FakeReader, make_connection

from sshfan.config import ClientConfig
from sshfan.models import Command, SessionState, Signal
from sshfan.services import (
    CommandSession,
    DialError,
    NegotiationError,
    RemoteExitError,
    SessionNotStartedError,
    SignalError,
    SSHClient,
)


@pytest.fixture
def client() -> SSHClient:
    """Client for a fake host."""
    return SSHClient("web1", port=2222, config=ClientConfig(username="deploy"))


@pytest.mark.asyncio
async def test_connect_passes_options(client: SSHClient) -> None:
    """The dial uses the address, timeout and credentials."""
    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = make_connection()
        await client.connect()

    mock_connect.assert_called_once_with(
        "web1", port=2222, connect_timeout=2.0, username="deploy"
    )


@pytest.mark.asyncio
async def test_connect_failure_is_dial_error(client: SSHClient) -> None:
    """Transport errors are wrapped with the address."""
    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = ConnectionRefusedError("refused")
        with pytest.raises(DialError, match="Cannot connect to web1:2222") as exc_info:
            await client.connect()

    assert isinstance(exc_info.value.original_error, ConnectionRefusedError)


def test_from_address() -> None:
    """Addresses parse into host and port."""
    assert SSHClient.from_address("web1").address == "web1:22"
    assert SSHClient.from_address("web1:2200").address == "web1:2200"
    assert SSHClient.from_address("[::1]:2200").host == "::1"


@pytest.mark.asyncio
async def test_run_success(client: SSHClient) -> None:
    """A clean exit leaves the session EXITED with output copied."""
    process = FakeProcess(stdout=[b"deploy\n"], stderr=[b"warn\n"])
    conn = make_connection(process)
    stdout, stderr = io.BytesIO(), io.BytesIO()
    command = Command(command="whoami", env={"KEY": "value"}, stdout=stdout, stderr=stderr)
    session = client.new_command_session(command)

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        await session.run()

    assert session.state is SessionState.EXITED
    assert stdout.getvalue() == b"deploy\n"
    assert stderr.getvalue() == b"warn\n"
    assert process.stdin.eof
    conn.create_process.assert_awaited_once_with(
        "/bin/bash -c whoami", env={"KEY": "value"}, encoding=None
    )
    conn.close.assert_called_once()
    assert session.started_at is not None and session.ended_at is not None


@pytest.mark.asyncio
async def test_stdin_is_copied(client: SSHClient) -> None:
    """Command input is written to the remote stdin before EOF."""
    process = FakeProcess()
    command = Command(executor="/bin/bash -s", stdin=io.BytesIO(b"echo hi\n"))
    session = client.new_command_session(command)

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=make_connection(process)):
        await session.start()
        await session.wait()

    assert bytes(process.stdin.data) == b"echo hi\n"
    assert process.stdin.eof


@pytest.mark.asyncio
async def test_non_zero_exit(client: SSHClient) -> None:
    """Non-zero exit statuses raise RemoteExitError."""
    session = client.new_command_session(Command(command="false"))
    conn = make_connection(FakeProcess(exit_status=3))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        await session.start()
        with pytest.raises(RemoteExitError, match="exited with status 3") as exc_info:
            await session.wait()

    assert exc_info.value.exit_status == 3
    assert session.state is SessionState.FAILED


@pytest.mark.asyncio
async def test_exit_by_signal(client: SSHClient) -> None:
    """A signal exit reports the signal name."""
    process = FakeProcess(exit_status=None, exit_signal=("TERM", False, "", "en-US"))
    session = client.new_command_session(Command(command="sleep 10"))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=make_connection(process)):
        await session.start()
        with pytest.raises(RemoteExitError, match="signal TERM") as exc_info:
            await session.wait()

    assert exc_info.value.exit_signal == "TERM"


@pytest.mark.asyncio
async def test_missing_exit_status(client: SSHClient) -> None:
    """A channel closed without a status is an error."""
    session = client.new_command_session(Command(command="true"))
    conn = make_connection(FakeProcess(exit_status=None))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        await session.start()
        with pytest.raises(RemoteExitError, match="without reporting"):
            await session.wait()


@pytest.mark.asyncio
async def test_dial_failure_releases_waiters(client: SSHClient) -> None:
    """Waiters parked before a failed start are released."""
    session = client.new_command_session(Command(command="true"))
    waiter = asyncio.create_task(session.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = OSError("no route to host")
        with pytest.raises(DialError):
            await session.start()

    with pytest.raises(SessionNotStartedError):
        await asyncio.wait_for(waiter, timeout=1)
    assert session.state is SessionState.FAILED
    assert session.ready


@pytest.mark.asyncio
async def test_signal_waits_for_start(client: SSHClient) -> None:
    """A signal issued during start is delivered once the process exists."""
    process = FakeProcess()
    session = client.new_command_session(Command(command="sleep 10"))
    signaller = asyncio.create_task(session.signal(Signal.TERM))
    await asyncio.sleep(0)
    assert not signaller.done()

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=make_connection(process)):
        await session.start()
        await asyncio.wait_for(signaller, timeout=1)

    assert process.signals == ["TERM"]


@pytest.mark.asyncio
async def test_signal_failure_is_signal_error(client: SSHClient) -> None:
    """Errors sending the signal are wrapped."""
    process = FakeProcess()

    def refuse(name: str) -> None:
        raise BrokenPipeError("channel closed")

    process.send_signal = refuse  # type: ignore[method-assign]
    session = client.new_command_session(Command(command="true"))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=make_connection(process)):
        await session.start()
        with pytest.raises(SignalError, match="cannot send signal INT"):
            await session.signal("SIGINT")


@pytest.mark.asyncio
async def test_start_rejected(client: SSHClient) -> None:
    """A rejected exec request is a NegotiationError."""
    conn = make_connection()
    conn.create_process.side_effect = asyncssh.ChannelOpenError(1, "denied")
    session = client.new_command_session(Command(command="true"))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        with pytest.raises(NegotiationError, match="start rejected"):
            await session.start()

    conn.close.assert_called_once()
    assert session.state is SessionState.FAILED


@pytest.mark.asyncio
async def test_invalid_env_name(client: SSHClient) -> None:
    """Environment names with '=' are refused before starting."""
    conn = make_connection()
    session = client.new_command_session(Command(command="env", env={"BAD=NAME": "x"}))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        with pytest.raises(NegotiationError, match="invalid environment variable"):
            await session.start()

    conn.create_process.assert_not_awaited()


@pytest.mark.asyncio
async def test_output_sink_failure_surfaces(client: SSHClient) -> None:
    """A failing output sink fails the wait."""

    class BrokenSink:
        def write(self, data: bytes) -> None:
            raise OSError("sink full")

    class SlowReader(FakeReader):
        async def read(self, n: int = -1) -> bytes:
            await asyncio.sleep(0.05)
            return await super().read(n)

    process = FakeProcess(stdout=[b"a", b"b"])
    process.stderr = SlowReader([b"warn\n"])
    session = client.new_command_session(Command(command="yes", stdout=BrokenSink()))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=make_connection(process)):
        await session.start()
        with pytest.raises(OSError, match="sink full"):
            await session.wait()

    assert session.state is SessionState.FAILED
    # the stderr copy is not left running
    assert all(task.done() for task in session._output_tasks)


@pytest.mark.asyncio
async def test_close(client: SSHClient) -> None:
    """Closing ends the channel and the connection."""
    process = FakeProcess()
    conn = make_connection(process)
    session = client.new_command_session(Command(command="sleep 10"))

    with patch("asyncssh.connect", new_callable=AsyncMock, return_value=conn):
        await session.start()
        await session.close()

    assert process.closed
    assert session.state is SessionState.CLOSED
    conn.close.assert_called_once()


@pytest.mark.asyncio
async def test_close_before_successful_start(client: SSHClient) -> None:
    """Close after a failed start reports the session was never started."""
    session = client.new_command_session(Command(command="true"))
    with patch("asyncssh.connect", new_callable=AsyncMock, side_effect=OSError("down")):
        with pytest.raises(DialError):
            await session.start()

    with pytest.raises(SessionNotStartedError):
        await session.close()


def test_session_repr(client: SSHClient) -> None:
    """Sessions show their address and state."""
    session = CommandSession(client, Command(command="true"))
    assert repr(session) == "CommandSession('web1:2222', state=created)"
