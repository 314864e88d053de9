"""Run shell commands on many hosts over SSH and collect per-host reports."""

from sshfan.config import ClientConfig, Settings, ensure_known_hosts, new_client_config
from sshfan.models import (
    BIN_BASH_EXECUTOR,
    BIN_BASH_STDIN_EXECUTOR,
    SUDO_BIN_BASH_EXECUTOR,
    SUDO_BIN_BASH_STDIN_EXECUTOR,
    Command,
    CommandReport,
    EnvVariable,
    SessionState,
    Signal,
    bash_command,
)
from sshfan.services import (
    Broadcaster,
    BroadcastError,
    CommandSession,
    DialError,
    NegotiationError,
    PoolCommandSession,
    RemoteExitError,
    SessionNotStartedError,
    SignalError,
    SSHClient,
    SSHFanError,
    SSHPool,
)
from sshfan.utils import LineWriter, pipe

__version__ = "0.1.0"

__all__ = [
    "BIN_BASH_EXECUTOR",
    "BIN_BASH_STDIN_EXECUTOR",
    "bash_command",
    "Broadcaster",
    "BroadcastError",
    "ClientConfig",
    "Command",
    "CommandReport",
    "CommandSession",
    "DialError",
    "ensure_known_hosts",
    "EnvVariable",
    "LineWriter",
    "NegotiationError",
    "new_client_config",
    "pipe",
    "PoolCommandSession",
    "RemoteExitError",
    "SessionNotStartedError",
    "SessionState",
    "Settings",
    "Signal",
    "SignalError",
    "SSHClient",
    "SSHFanError",
    "SSHPool",
    "SUDO_BIN_BASH_EXECUTOR",
    "SUDO_BIN_BASH_STDIN_EXECUTOR",
]
