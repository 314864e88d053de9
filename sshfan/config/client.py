"""Authentication material for SSH clients."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import asyncssh

from sshfan.config.host_keys import HostKeyVerifier

if TYPE_CHECKING:
    from sshfan.config.settings import Settings

logger = logging.getLogger(__name__)

# Sentinel meaning "let asyncssh use ~/.ssh/known_hosts"
DEFAULT_KNOWN_HOSTS: Any = ()


@dataclass
class ClientConfig:
    """Credentials and host identity checks used when connecting.

    Attributes:
        username: Remote user name, None for the local user
        client_keys: Private keys to authenticate with, None for asyncssh
            defaults
        known_hosts: Trusted host keys; a path, an ``asyncssh.SSHKnownHosts``,
            None to disable verification, or ``()`` for the default file
    """

    username: str | None = None
    client_keys: list[asyncssh.SSHKey] | None = None
    known_hosts: Any = field(default=DEFAULT_KNOWN_HOSTS)

    def to_connect_kwargs(self) -> dict[str, Any]:
        """Convert to ``asyncssh.connect()`` keyword arguments."""
        options: dict[str, Any] = {}
        if self.username:
            options["username"] = self.username
        if self.client_keys is not None:
            options["client_keys"] = self.client_keys
        if self.known_hosts is not DEFAULT_KNOWN_HOSTS:
            options["known_hosts"] = self.known_hosts
        return options

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientConfig":
        """Build a client config from environment settings.

        Raises:
            FileNotFoundError: If strict host key checking is on and the
                known_hosts file is missing
            asyncssh.KeyImportError: If the identity file cannot be parsed
        """
        if settings.identity_file:
            config = new_client_config(settings.user, settings.identity_file)
        else:
            config = cls(username=settings.user)

        verifier = HostKeyVerifier(
            known_hosts_path=settings.known_hosts,
            strict_checking=settings.strict_host_key_checking,
        )
        known_hosts_path = verifier.get_known_hosts_path()
        if known_hosts_path is None:
            config.known_hosts = None
        else:
            ensure_known_hosts(config, known_hosts_path)
        return config


def new_client_config(user: str, key_path: str | Path) -> ClientConfig:
    """Create a client config authenticating with a private key file.

    Args:
        user: Remote user name
        key_path: Path to an unencrypted private key

    Returns:
        ClientConfig using the key for public key authentication

    Raises:
        OSError: If the key file cannot be read
        asyncssh.KeyImportError: If the key cannot be parsed
    """
    path = Path(key_path).expanduser()
    key = asyncssh.read_private_key(str(path))
    logger.debug("Loaded %s private key from %s", key.get_algorithm(), path)
    return ClientConfig(username=user, client_keys=[key])


def ensure_known_hosts(config: ClientConfig, known_hosts_path: str | Path) -> None:
    """Verify server host keys against a known_hosts file.

    Args:
        config: Client config to update in place
        known_hosts_path: Path to an OpenSSH known_hosts file

    Raises:
        OSError: If the file cannot be read
    """
    path = Path(known_hosts_path).expanduser()
    config.known_hosts = asyncssh.read_known_hosts(str(path))
    logger.debug("Host keys will be verified against %s", path)
