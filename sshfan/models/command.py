"""Command data models."""

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sshfan.utils.shell import resolve_command_line

BIN_BASH_EXECUTOR = "/bin/bash -c {command}"
BIN_BASH_STDIN_EXECUTOR = "/bin/bash -s"
SUDO_BIN_BASH_EXECUTOR = "/usr/bin/sudo /bin/bash -c {command}"
SUDO_BIN_BASH_STDIN_EXECUTOR = "/usr/bin/sudo /bin/bash -s"

_UNSET: Any = object()


@dataclass(frozen=True)
class EnvVariable:
    """Environment variable sent to the remote session."""

    name: str
    value: str


EnvSpec = Iterable[EnvVariable | tuple[str, str]] | Mapping[str, str]


def _normalize_env(env: EnvSpec | None) -> tuple[EnvVariable, ...]:
    if not env:
        return ()
    if isinstance(env, Mapping):
        return tuple(EnvVariable(str(k), str(v)) for k, v in env.items())

    variables = []
    for item in env:
        if isinstance(item, EnvVariable):
            variables.append(item)
        else:
            name, value = item
            variables.append(EnvVariable(str(name), str(value)))
    return tuple(variables)


@dataclass(frozen=True, eq=False)
class Command:
    """What to run on a remote host.

    Attributes:
        executor: Executor template; ``{command}`` marks where the shell-quoted
            command text goes
        command: Command text, empty to run the executor verbatim
        env: Ordered environment variables to set before starting
        stdin: Source for the remote stdin, or None for no input
        stdout: Sink for the remote stdout, or None to discard
        stderr: Sink for the remote stderr, or None to discard
    """

    executor: str = BIN_BASH_EXECUTOR
    command: str = ""
    env: tuple[EnvVariable, ...] = ()
    stdin: Any = None
    stdout: Any = None
    stderr: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", _normalize_env(self.env))

    def command_line(self) -> str:
        """Resolve the command line started on the remote host."""
        return resolve_command_line(self.executor, self.command)

    def environment(self) -> dict[str, str]:
        """Environment as an ordered dict; later duplicates win."""
        return {var.name: var.value for var in self.env}

    def clone(self, stdin: Any = _UNSET) -> "Command":
        """Copy this command, optionally with a different input stream.

        Output and error sinks are shared with the original, not copied.
        """
        if stdin is _UNSET:
            return dataclasses.replace(self)
        return dataclasses.replace(self, stdin=stdin)


def bash_command(text: str, *args: Any) -> Command:
    """Build a command run through ``/bin/bash -c``.

    Args:
        text: Command text, %-formatted with ``args`` when any are given
        *args: Format arguments

    Returns:
        Command using the bash executor
    """
    if args:
        text = text % args
    return Command(executor=BIN_BASH_EXECUTOR, command=text)
