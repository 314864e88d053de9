"""Configuration for sshfan.

Provides focused pieces for different configuration concerns:
- Settings: Environment variable configuration
- HostKeyVerifier: Resolves the known_hosts file to trust
- ClientConfig: Credentials and host key checks passed to asyncssh
"""

from sshfan.config.client import ClientConfig, ensure_known_hosts, new_client_config
from sshfan.config.host_keys import HostKeyVerifier
from sshfan.config.settings import DEFAULT_DIAL_TIMEOUT, Settings

__all__ = [
    "ClientConfig",
    "DEFAULT_DIAL_TIMEOUT",
    "ensure_known_hosts",
    "HostKeyVerifier",
    "new_client_config",
    "Settings",
]
