"""Command session lifecycle states."""

from enum import Enum


class SessionState(Enum):
    """Lifecycle of one remote command invocation."""

    CREATED = "created"
    DIALING = "dialing"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    RUNNING = "running"
    EXITED = "exited"
    FAILED = "failed"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        """True for states with no further transitions."""
        return self in (SessionState.EXITED, SessionState.FAILED, SessionState.CLOSED)
