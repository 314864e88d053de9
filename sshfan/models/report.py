"""Per-host outcome of a pool command session."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sshfan.models.command import Command
    from sshfan.services.session import CommandSession


@dataclass
class CommandReport:
    """Result from a single host in a pool command session."""

    session: "CommandSession"
    command: "Command"
    error: BaseException | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    def record_error(self, error: BaseException | None) -> bool:
        """Record ``error`` unless an earlier error is already recorded.

        Returns:
            True if the error was recorded
        """
        if error is None or self.error is not None:
            return False
        self.error = error
        return True

    @property
    def ok(self) -> bool:
        """True when no phase reported an error."""
        return self.error is None

    @property
    def host(self) -> str:
        """Address of the host this report belongs to."""
        return self.session.client.address

    @property
    def duration(self) -> timedelta | None:
        """Elapsed time between start and end, if both are known."""
        if self.started_at is None or self.ended_at is None:
            return None
        return self.ended_at - self.started_at
