"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import getpass
import logging
import os
from dataclasses import dataclass, field

from sshfan.utils.streams import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

DEFAULT_DIAL_TIMEOUT = 2.0


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all SSHFAN_* env vars.
    """

    # Authentication
    user: str = field(default_factory=getpass.getuser)
    identity_file: str | None = field(default=None)

    # Host key verification
    known_hosts: str | None = field(default=None)
    strict_host_key_checking: bool = field(default=True)

    # Sessions
    dial_timeout: float = field(default=DEFAULT_DIAL_TIMEOUT)
    chunk_size: int = field(default=DEFAULT_CHUNK_SIZE)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            user=os.getenv("SSHFAN_USER") or getpass.getuser(),
            identity_file=os.getenv("SSHFAN_IDENTITY_FILE") or None,
            known_hosts=os.getenv("SSHFAN_KNOWN_HOSTS") or None,
            strict_host_key_checking=cls._get_bool(
                "SSHFAN_STRICT_HOST_KEY_CHECKING", True
            ),
            dial_timeout=cls._get_float("SSHFAN_DIAL_TIMEOUT", DEFAULT_DIAL_TIMEOUT),
            chunk_size=cls._get_int("SSHFAN_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            log_level=os.getenv("SSHFAN_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("SSHFAN_LOG_COLORS", True),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get a positive integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

        if parsed <= 0:
            logger.warning("%s must be > 0, got %d. Using default: %d", key, parsed, default)
            return default
        return parsed

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Get a positive float from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = float(value)
        except ValueError:
            logger.warning("Invalid float for %s: %s, using default %s", key, value, default)
            return default

        if parsed <= 0:
            logger.warning("%s must be > 0, got %s. Using default: %s", key, parsed, default)
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")
