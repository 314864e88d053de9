"""SSH transport endpoint."""

import asyncio
import logging
from typing import TYPE_CHECKING

import asyncssh

from sshfan.config import DEFAULT_DIAL_TIMEOUT, ClientConfig
from sshfan.services.errors import DialError
from sshfan.services.session import CommandSession

if TYPE_CHECKING:
    from sshfan.models import Command

logger = logging.getLogger(__name__)


class SSHClient:
    """One remote host reachable over SSH.

    The client holds only the address and authentication material. Every
    command session opens and owns its own connection.
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        config: ClientConfig | None = None,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            host: Hostname or IP address
            port: SSH port
            config: Credentials and host key checks, defaults to a ClientConfig
                using asyncssh defaults
            dial_timeout: Seconds allowed to connect and authenticate
        """
        self.host = host
        self.port = port
        self.config = config if config is not None else ClientConfig()
        self.dial_timeout = dial_timeout

    @classmethod
    def from_address(
        cls,
        address: str,
        config: ClientConfig | None = None,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT,
    ) -> "SSHClient":
        """Create a client from ``host`` or ``host:port``.

        Raises:
            ValueError: If the port is not a number
        """
        host, sep, port = address.rpartition(":")
        if not sep or not host or "]" in port:
            return cls(address, config=config, dial_timeout=dial_timeout)
        return cls(
            host.strip("[]"),
            port=int(port),
            config=config,
            dial_timeout=dial_timeout,
        )

    @property
    def address(self) -> str:
        """host:port of this endpoint."""
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"SSHClient({self.address!r})"

    async def connect(self) -> asyncssh.SSHClientConnection:
        """Open an authenticated connection.

        Returns:
            Connected asyncssh client connection

        Raises:
            DialError: If the dial times out, is refused, or the handshake
                or authentication fails
        """
        options = self.config.to_connect_kwargs()
        logger.debug(
            "Dialing %s@%s (timeout=%ss)",
            options.get("username", "-"),
            self.address,
            self.dial_timeout,
        )
        try:
            return await asyncssh.connect(
                self.host,
                port=self.port,
                connect_timeout=self.dial_timeout,
                **options,
            )
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            raise DialError(self.address, e) from e

    def new_command_session(self, command: "Command") -> "CommandSession":
        """Create an unstarted session running ``command`` on this host."""
        return CommandSession(self, command)
