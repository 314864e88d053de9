"""Services for sshfan."""

from sshfan.services.broadcast import Broadcaster, BroadcastReader
from sshfan.services.client import SSHClient
from sshfan.services.errors import (
    BroadcastError,
    DialError,
    NegotiationError,
    RemoteExitError,
    SessionNotStartedError,
    SignalError,
    SSHFanError,
)
from sshfan.services.pool import PoolCommandSession, SSHPool
from sshfan.services.session import CommandSession

__all__ = [
    "Broadcaster",
    "BroadcastError",
    "BroadcastReader",
    "CommandSession",
    "DialError",
    "NegotiationError",
    "PoolCommandSession",
    "RemoteExitError",
    "SessionNotStartedError",
    "SignalError",
    "SSHClient",
    "SSHFanError",
    "SSHPool",
]
