"""Remote signal names."""

import signal as os_signal
from enum import Enum


class Signal(str, Enum):
    """Signal names as carried by the SSH ``signal`` channel request."""

    ABRT = "ABRT"
    ALRM = "ALRM"
    FPE = "FPE"
    HUP = "HUP"
    ILL = "ILL"
    INT = "INT"
    KILL = "KILL"
    PIPE = "PIPE"
    QUIT = "QUIT"
    SEGV = "SEGV"
    TERM = "TERM"
    USR1 = "USR1"
    USR2 = "USR2"


def signal_name(sig: "Signal | str | int") -> str:
    """Normalize a signal to its protocol name.

    Accepts a :class:`Signal`, a name with or without the ``SIG`` prefix
    (``"TERM"``, ``"SIGTERM"``) or an OS signal number.

    Raises:
        ValueError: If the signal is unknown
    """
    if isinstance(sig, Signal):
        return sig.value
    if isinstance(sig, int):
        try:
            name = os_signal.Signals(sig).name
        except ValueError:
            raise ValueError(f"Unknown signal number: {sig}") from None
        return name[3:]

    name = sig.strip().upper()
    if name.startswith("SIG"):
        name = name[3:]
    if not name:
        raise ValueError(f"Invalid signal name: {sig!r}")
    return name
