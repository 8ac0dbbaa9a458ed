"""
Configuration for procfleet.

Loads defaults from environment variables (and a .env in the working
directory). Command line flags override these per run.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """A problem with the run's inputs. Nothing is started when raised."""


def _optional_path(value: str) -> Optional[Path]:
    return Path(value).expanduser() if value else None


@dataclass
class Config:
    """procfleet configuration."""

    # Inputs
    procfile: Path = Path(os.environ.get("PROCFLEET_PROCFILE", "Procfile"))
    env_file: Optional[Path] = _optional_path(os.environ.get("PROCFLEET_ENV_FILE", ""))

    # Process management
    port: int = int(os.environ.get("PROCFLEET_PORT", "5000"))
    port_step: int = 100
    shutdown_grace_time: float = float(os.environ.get("PROCFLEET_SHUTDOWN_GRACE_TIME", "3"))
    restart: bool = os.environ.get("PROCFLEET_RESTART", "false").lower() == "true"
    restart_delay: float = float(os.environ.get("PROCFLEET_RESTART_DELAY", "0"))

    # Logging
    log_file: Optional[Path] = _optional_path(os.environ.get("PROCFLEET_LOG_FILE", ""))
    log_level: str = os.environ.get("PROCFLEET_LOG_LEVEL", "WARNING").upper()
    log_max_bytes: int = int(os.environ.get("PROCFLEET_LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("PROCFLEET_LOG_BACKUP_COUNT", "5"))

    @property
    def root(self) -> Path:
        """Directory the Procfile lives in; children run here."""
        return self.procfile.resolve().parent

    def get_env_file(self) -> Path:
        """Env file to read: the configured one, else .env next to the Procfile."""
        if self.env_file:
            return self.env_file
        return self.root / ".env"

    def __post_init__(self):
        self.procfile = Path(self.procfile)
        if self.env_file is not None:
            self.env_file = Path(self.env_file)
        if self.shutdown_grace_time < 0:
            raise ConfigurationError("shutdown grace time must not be negative")
        if self.restart_delay < 0:
            raise ConfigurationError("restart delay must not be negative")


config = Config()
