"""Errors raised by command sessions."""


class SSHFanError(Exception):
    """Base class for sshfan errors."""


class DialError(SSHFanError):
    """Failed to connect or authenticate to a host."""

    def __init__(self, address: str, original_error: BaseException):
        """Initialize dial error.

        Args:
            address: host:port that was dialed
            original_error: Exception raised by the transport
        """
        self.address = address
        self.original_error = original_error
        super().__init__(f"Cannot connect to {address}: {original_error}")


class NegotiationError(SSHFanError):
    """The remote side rejected the environment or the start request."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"{address}: {message}")


class RemoteExitError(SSHFanError):
    """Remote process did not exit cleanly.

    Attributes:
        exit_status: Exit status, or None if killed by a signal or unknown
        exit_signal: Name of the terminating signal, if any
    """

    def __init__(
        self,
        address: str,
        exit_status: int | None = None,
        exit_signal: str | None = None,
    ):
        self.address = address
        self.exit_status = exit_status
        self.exit_signal = exit_signal
        if exit_signal:
            reason = f"terminated by signal {exit_signal}"
        elif exit_status is None:
            reason = "exited without reporting an exit status"
        else:
            reason = f"exited with status {exit_status}"
        super().__init__(f"{address}: remote command {reason}")


class SignalError(SSHFanError):
    """Failed to deliver a signal request."""

    def __init__(self, address: str, signal: str, original_error: BaseException):
        self.address = address
        self.signal = signal
        self.original_error = original_error
        super().__init__(f"{address}: cannot send signal {signal}: {original_error}")


class SessionNotStartedError(SSHFanError):
    """Operation needs a remote process but none was started."""


class BroadcastError(SSHFanError):
    """The shared input source of a broadcaster failed."""
