"""Data models for sshfan."""

from sshfan.models.command import (
    BIN_BASH_EXECUTOR,
    BIN_BASH_STDIN_EXECUTOR,
    SUDO_BIN_BASH_EXECUTOR,
    SUDO_BIN_BASH_STDIN_EXECUTOR,
    Command,
    EnvVariable,
    bash_command,
)
from sshfan.models.report import CommandReport
from sshfan.models.session import SessionState
from sshfan.models.signals import Signal, signal_name

__all__ = [
    "BIN_BASH_EXECUTOR",
    "BIN_BASH_STDIN_EXECUTOR",
    "bash_command",
    "Command",
    "CommandReport",
    "EnvVariable",
    "SessionState",
    "Signal",
    "signal_name",
    "SUDO_BIN_BASH_EXECUTOR",
    "SUDO_BIN_BASH_STDIN_EXECUTOR",
]
