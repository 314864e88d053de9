"""Command line entry point: run one command on many hosts."""

import argparse
import asyncio
import dataclasses
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

import asyncssh

from sshfan.config import ClientConfig, Settings
from sshfan.models import (
    BIN_BASH_EXECUTOR,
    BIN_BASH_STDIN_EXECUTOR,
    SUDO_BIN_BASH_EXECUTOR,
    SUDO_BIN_BASH_STDIN_EXECUTOR,
    Command,
    CommandReport,
    EnvVariable,
)
from sshfan.services import SSHClient, SSHPool
from sshfan.utils import LineWriter, configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sshfan",
        description="Run a shell command on many SSH hosts and report per host",
    )
    parser.add_argument(
        "-H",
        "--host",
        dest="hosts",
        action="append",
        required=True,
        metavar="HOST[:PORT]",
        help="Target host; repeat for each host",
    )
    parser.add_argument("-u", "--user", help="Remote user (SSHFAN_USER)")
    parser.add_argument(
        "-i", "--identity-file", help="Private key file (SSHFAN_IDENTITY_FILE)"
    )
    parser.add_argument(
        "--known-hosts",
        help="known_hosts file, or 'none' to skip verification (SSHFAN_KNOWN_HOSTS)",
    )
    parser.add_argument(
        "-e",
        "--env",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Environment variable for the remote command; repeatable",
    )
    parser.add_argument("--sudo", action="store_true", help="Run through sudo")
    parser.add_argument(
        "--stdin",
        action="store_true",
        help="Send local stdin to every host",
    )
    parser.add_argument(
        "--dial-timeout",
        type=float,
        help="Seconds allowed to connect (SSHFAN_DIAL_TIMEOUT)",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run")
    return parser


def parse_env(values: Sequence[str]) -> list[EnvVariable]:
    """Parse NAME=VALUE strings.

    Raises:
        ValueError: If a value has no '='
    """
    env = []
    for value in values:
        name, sep, val = value.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid environment variable {value!r}, expected NAME=VALUE")
        env.append(EnvVariable(name, val))
    return env


def _select_executor(has_command: bool, sudo: bool) -> str:
    if has_command:
        return SUDO_BIN_BASH_EXECUTOR if sudo else BIN_BASH_EXECUTOR
    return SUDO_BIN_BASH_STDIN_EXECUTOR if sudo else BIN_BASH_STDIN_EXECUTOR


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "user": args.user,
        "identity_file": args.identity_file,
        "known_hosts": args.known_hosts,
        "dial_timeout": args.dial_timeout,
    }
    return dataclasses.replace(
        settings, **{k: v for k, v in overrides.items() if v is not None}
    )


def _host_writer(address: str, stream: TextIO) -> LineWriter:
    def emit(line: bytes) -> None:
        print(f"[{address}] {line.decode('utf-8', errors='replace')}", file=stream)

    return LineWriter(emit)


def _summarize(report: CommandReport) -> str:
    duration = report.duration
    elapsed = f"{duration.total_seconds() * 1000:.1f}ms" if duration else "-"
    if report.ok:
        return f"{report.host}: ok ({elapsed})"
    return f"{report.host}: FAILED ({elapsed}): {report.error}"


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Run the command described by ``args`` on every host.

    Returns:
        Process exit code: 0 if every host succeeded, 1 otherwise
    """
    config = ClientConfig.from_settings(settings)
    pool = SSHPool(chunk_size=settings.chunk_size)
    for address in args.hosts:
        pool.add_client(
            SSHClient.from_address(address, config=config, dial_timeout=settings.dial_timeout)
        )

    text = " ".join(args.command)
    command = Command(
        executor=_select_executor(bool(text), args.sudo),
        command=text,
        env=parse_env(args.env),
        stdin=sys.stdin.buffer if args.stdin else None,
    )

    batch = pool.new_command_session(command)
    writers = []
    for session in batch.sessions:
        address = session.client.address
        stdout = _host_writer(address, sys.stdout)
        stderr = _host_writer(address, sys.stderr)
        writers.extend((stdout, stderr))
        session.command = dataclasses.replace(session.command, stdout=stdout, stderr=stderr)

    reports = await batch.run()
    for writer in writers:
        writer.close()

    for report in reports:
        print(_summarize(report), file=sys.stderr)
    return 1 if batch.failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command and not args.stdin:
        parser.error("a command is required unless --stdin is given")

    settings = _apply_overrides(Settings.from_env(), args)
    configure_logging(settings.log_level, use_colors=settings.log_colors)

    try:
        return asyncio.run(run(args, settings))
    except (ValueError, OSError, asyncssh.Error) as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
