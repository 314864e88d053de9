"""Shell command line helpers."""

import shlex

COMMAND_PLACEHOLDER = "{command}"


def quote_arg(arg: str) -> str:
    """Safely quote a shell argument.

    Args:
        arg: Argument to quote

    Returns:
        Shell-safe quoted argument
    """
    return shlex.quote(arg)


def resolve_command_line(executor: str, command: str) -> str:
    """Build the remote command line from an executor template.

    An empty ``command`` uses the template verbatim. Otherwise the single
    ``{command}`` placeholder is replaced with the shell-quoted command text.

    Args:
        executor: Executor template, e.g. ``/bin/bash -c {command}``
        command: Command text to embed

    Returns:
        The command line to start on the remote host

    Raises:
        ValueError: If command text is given but the template does not have
            exactly one placeholder
    """
    if not command:
        return executor

    count = executor.count(COMMAND_PLACEHOLDER)
    if count != 1:
        raise ValueError(
            f"executor {executor!r} must contain exactly one "
            f"{COMMAND_PLACEHOLDER} placeholder, found {count}"
        )
    return executor.replace(COMMAND_PLACEHOLDER, quote_arg(command))
