"""
Output multiplexing.

Every child's stdout and stderr is labelled with the replica's display name
and written line by line to one shared stream. Writes from all threads go
through a single lock so lines never interleave.
"""

import os
import sys
import threading

SYSTEM_LABEL = "procfleet"

RESET = "\033[0m"
BOLD = "\033[1m"
RED = "\033[1;31m"
COLORS = [
    "\033[1;36m",  # cyan
    "\033[1;33m",  # yellow
    "\033[1;32m",  # green
    "\033[1;35m",  # magenta
    "\033[1;31m",  # red
    "\033[1;34m",  # blue
]
SYSTEM_COLOR = "\033[1;37m"


def _stream_supports_color(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # closed stream
        return False


class Outlet:
    """Line-oriented sink for one output stream of one replica."""

    def __init__(self, factory: "OutletFactory", name: str, color: str, is_error: bool):
        self.factory = factory
        self.name = name
        self.color = color
        self.is_error = is_error

    def write_line(self, line: str):
        self.factory.write_line(self.name, line.rstrip("\r\n"), self.color, self.is_error)

    def pump(self, stream):
        """Copy a binary stream into this outlet until EOF."""
        for raw in iter(stream.readline, b""):
            self.write_line(raw.decode("utf-8", errors="replace"))


class OutletFactory:
    """Creates outlets and serializes everything they write."""

    def __init__(self, stream=None, padding: int = 0, color: bool = None):
        self.stream = stream if stream is not None else sys.stdout
        self.padding = max(padding, len(SYSTEM_LABEL))
        self.color = _stream_supports_color(self.stream) if color is None else color
        self._lock = threading.Lock()

    def create_outlet(self, name: str, index: int, is_error: bool) -> Outlet:
        """Outlet for replica ``name``; ``index`` picks the color slot."""
        return Outlet(self, name, COLORS[index % len(COLORS)], is_error)

    def write_line(self, left: str, right: str, color: str = "", is_error: bool = False):
        label = f"{left:<{self.padding}} | "
        if self.color:
            label = f"{color}{label}{RESET}"
            if is_error:
                right = f"{RED}{right}{RESET}"

        with self._lock:
            self.stream.write(f"{label}{right}\n")
            self.stream.flush()

    def system_output(self, text: str):
        """Status line not attributed to any one process."""
        if self.color:
            text = f"{BOLD}{text}{RESET}"
        self.write_line(SYSTEM_LABEL, text, SYSTEM_COLOR)

    def error_output(self, text: str):
        """Report an unrecoverable error and exit."""
        with self._lock:
            self.stream.write(f"ERROR: {text}\n")
            self.stream.flush()
        raise SystemExit(1)
