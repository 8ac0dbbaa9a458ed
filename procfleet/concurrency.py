"""Parsing of ``name=count[,name=count...]`` replica counts."""

import re

from .config import ConfigurationError


COUNT_RE = re.compile(r"^[+-]?[0-9]+$")
MAX_REPLICAS = 32767


class ConcurrencyError(ConfigurationError):
    """Malformed concurrency flag."""


def parse_concurrency(value: str) -> dict[str, int]:
    """
    Parse a concurrency flag into a mapping of process name to replica count.

    >>> parse_concurrency("web=2, worker=1")
    {'web': 2, 'worker': 1}
    """
    concurrency: dict[str, int] = {}
    if not value or not value.strip():
        return concurrency

    for part in value.split(","):
        if "=" not in part:
            raise ConcurrencyError(f"parsing concurrency: expected name=count, got {part.strip()!r}")

        name, count = (s.strip() for s in part.split("=", 1))
        if not name or not count:
            raise ConcurrencyError(f"parsing concurrency: empty name or count in {part.strip()!r}")

        if not COUNT_RE.match(count):
            raise ConcurrencyError(f"parsing concurrency: {count!r} is not a number")

        replicas = int(count)

        if replicas < 0:
            raise ConcurrencyError(f"parsing concurrency: negative count for {name}")
        if replicas > MAX_REPLICAS:
            raise ConcurrencyError(f"parsing concurrency: count for {name} exceeds {MAX_REPLICAS}")

        concurrency[name] = replicas

    return concurrency
