"""Utilities for sshfan."""

from sshfan.utils.console import ColorfulFormatter, configure_logging
from sshfan.utils.shell import quote_arg, resolve_command_line
from sshfan.utils.streams import (
    BufferedReader,
    LineWriter,
    PipeReader,
    PipeWriter,
    pipe,
    read_chunk,
    write_chunk,
)

__all__ = [
    "BufferedReader",
    "ColorfulFormatter",
    "configure_logging",
    "LineWriter",
    "pipe",
    "PipeReader",
    "PipeWriter",
    "quote_arg",
    "read_chunk",
    "resolve_command_line",
    "write_chunk",
]
