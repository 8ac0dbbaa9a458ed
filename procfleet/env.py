"""
Environment files.

Env files use the usual ``KEY=value`` dotenv syntax and are parsed with
python-dotenv. Their values are layered over the supervisor's own
environment for every child.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .config import ConfigurationError

logger = logging.getLogger(__name__)


class EnvFileError(ConfigurationError):
    """The env file could not be read."""


def read_env(path, required: bool = False) -> dict[str, str]:
    """
    Read an env file into a flat mapping.

    A missing file is an empty mapping unless ``required`` is set. Keys
    declared without a value are dropped.
    """
    path = Path(path)
    if not path.exists():
        if required:
            raise EnvFileError(f"env file not found: {path}")
        logger.debug(f"No env file at {path}")
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            values = dotenv_values(stream=f)
    except OSError as e:
        raise EnvFileError(f"cannot read {path}: {e.strerror or e}") from e

    return {key: value for key, value in values.items() if value is not None}


def child_environment(overrides: dict[str, str], port: Optional[int] = None) -> dict[str, str]:
    """Inherited environment plus env file values plus ``PORT``."""
    env = os.environ.copy()
    env.update(overrides)
    if port is not None:
        env["PORT"] = str(port)
    return env
