"""
Procfile parsing.

A Procfile lists one process type per line as ``name: command``. Blank lines
and lines starting with ``#`` are ignored. Entry order is kept because it
decides each process type's port offset and output color.
"""

import logging
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .config import ConfigurationError

logger = logging.getLogger(__name__)

NAME_PATTERN = r"[A-Za-z0-9_-]+"
LINE_RE = re.compile(rf"^(?P<name>{NAME_PATTERN}):\s*(?P<command>.+)$")


class ProcfileError(ConfigurationError):
    """The Procfile is missing, unreadable or malformed."""


class ProcfileEntry(BaseModel):
    """A named command template."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=rf"^{NAME_PATTERN}$")
    command: str = Field(..., min_length=1)


class Procfile:
    """Ordered collection of Procfile entries."""

    def __init__(self, entries: list[ProcfileEntry]):
        self.entries = list(entries)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]

    def has_process(self, name: str) -> bool:
        return any(entry.name == name for entry in self.entries)

    def longest_process_name(self) -> int:
        """Length of the longest entry name (0 for an empty Procfile)."""
        return max((len(entry.name) for entry in self.entries), default=0)


def parse_procfile(text: str) -> Procfile:
    """Parse Procfile contents."""
    entries = []
    seen = set()

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        match = LINE_RE.match(line)
        if not match:
            raise ProcfileError(f"invalid Procfile line {lineno}: {raw!r}")

        name = match.group("name")
        if name in seen:
            raise ProcfileError(f"duplicate process name on line {lineno}: {name}")
        seen.add(name)

        entries.append(ProcfileEntry(name=name, command=match.group("command").strip()))

    if not entries:
        raise ProcfileError("no processes defined")

    return Procfile(entries)


def read_procfile(path) -> Procfile:
    """Read and parse the Procfile at ``path``."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProcfileError(f"cannot read {path}: {e.strerror or e}") from e

    procfile = parse_procfile(text)
    logger.debug(f"Read {len(procfile)} process types from {path}")
    return procfile
