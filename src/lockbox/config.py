# Configuration
#
# Settings are read once at process start from the environment, after
# loading a .env file if one exists (python-dotenv). The encryption key and
# the database URL are required; missing either is fatal.

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .core.db import parse_database_url
from .exceptions import ConfigurationError
from .vault.encryption import key_from_secret

logger = logging.getLogger(__name__)

ENV_ENCRYPTION_KEY = "LOCKBOX_ENCRYPTION_KEY"
ENV_DATABASE_URL = "LOCKBOX_DATABASE_URL"
ENV_AUDIT_LOG_DIR = "LOCKBOX_AUDIT_LOG_DIR"
ENV_HOST = "LOCKBOX_HOST"
ENV_PORT = "LOCKBOX_PORT"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_AUDIT_LOG_DIR = "./audit_logs"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration."""

    encryption_key: bytes
    database_url: str
    audit_log_dir: Path = Path(DEFAULT_AUDIT_LOG_DIR)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def __repr__(self) -> str:
        # Keep the key out of tracebacks and log lines
        return (
            f"Settings(database_url={self.database_url!r}, "
            f"audit_log_dir={str(self.audit_log_dir)!r}, "
            f"host={self.host!r}, port={self.port})"
        )


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (tests). When given,
            no .env file is loaded.
        dotenv_path: Explicit .env file; defaults to python-dotenv's search.

    Raises:
        ConfigurationError: If a required value is missing or malformed
    """
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path)
        environ = os.environ

    secret = environ.get(ENV_ENCRYPTION_KEY, "")
    if not secret:
        raise ConfigurationError(f"{ENV_ENCRYPTION_KEY} is not set")
    encryption_key = key_from_secret(secret)

    database_url = environ.get(ENV_DATABASE_URL, "").strip()
    if not database_url:
        raise ConfigurationError(f"{ENV_DATABASE_URL} is not set")
    try:
        parse_database_url(database_url)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_DATABASE_URL} is invalid: {e}") from e

    port_raw = environ.get(ENV_PORT, str(DEFAULT_PORT))
    try:
        port = int(port_raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PORT} must be an integer, got {port_raw!r}")
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"{ENV_PORT} out of range: {port}")

    settings = Settings(
        encryption_key=encryption_key,
        database_url=database_url,
        audit_log_dir=Path(environ.get(ENV_AUDIT_LOG_DIR, DEFAULT_AUDIT_LOG_DIR)),
        host=environ.get(ENV_HOST, DEFAULT_HOST),
        port=port,
    )
    logger.debug(f"Loaded settings: {settings!r}")
    return settings
