"""
Child process handle.

Wraps one ``subprocess.Popen`` running a Procfile command through the
platform shell. Output is pumped line by line into outlets by two reader
threads. On POSIX the child leads its own session, so SIGTERM and SIGKILL
reach everything the command spawned.
"""

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import Optional

import psutil

from .outlet import Outlet

logger = logging.getLogger(__name__)

HAVE_SIGTERM = os.name == "posix"

# How long wait() lets reader threads drain after the child is reaped
OUTPUT_DRAIN_TIMEOUT = 1.0


class Process:
    """A single child process and its output plumbing."""

    def __init__(
        self,
        command: str,
        env: Optional[dict[str, str]] = None,
        root: Optional[Path] = None,
        stdout: Optional[Outlet] = None,
        stderr: Optional[Outlet] = None,
    ):
        self.command = command
        self.env = dict(env) if env is not None else os.environ.copy()
        self.root = root
        self.stdout = stdout
        self.stderr = stderr
        self.popen: Optional[subprocess.Popen] = None
        self._readers: list[threading.Thread] = []

    @property
    def pid(self) -> Optional[int]:
        return self.popen.pid if self.popen else None

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.returncode if self.popen else None

    def _args(self) -> list[str]:
        if HAVE_SIGTERM:
            return ["/bin/sh", "-c", self.command]
        return ["cmd", "/C", self.command]

    def start(self):
        """Launch the child. Raises OSError if it cannot be started."""
        self.popen = subprocess.Popen(
            self._args(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if self.stdout else None,
            stderr=subprocess.PIPE if self.stderr else None,
            cwd=str(self.root) if self.root else None,
            env=self.env,
            start_new_session=HAVE_SIGTERM,
        )
        logger.debug(f"Started {self.command!r} with PID {self.popen.pid}")

        for outlet, stream in ((self.stdout, self.popen.stdout), (self.stderr, self.popen.stderr)):
            if outlet is None:
                continue
            thread = threading.Thread(
                target=self._capture_output,
                args=(outlet, stream),
                daemon=True,
            )
            thread.start()
            self._readers.append(thread)

    def _capture_output(self, outlet: Outlet, stream):
        try:
            outlet.pump(stream)
        except (OSError, ValueError) as e:
            logger.error(f"Error in output capture for PID {self.pid}: {e}")
        finally:
            stream.close()

    def wait(self) -> int:
        """Block until the child exits, reap it, and flush its output."""
        returncode = self.popen.wait()
        for thread in self._readers:
            thread.join(OUTPUT_DRAIN_TIMEOUT)
        return returncode

    def send_sigterm(self):
        """Ask the child's process group to stop."""
        if HAVE_SIGTERM:
            self._signal_group(signal.SIGTERM)
        else:
            self.popen.terminate()

    def send_sigkill(self):
        """Kill the child and everything it spawned."""
        if HAVE_SIGTERM:
            self._signal_group(signal.SIGKILL)
        else:
            self._kill_tree()

    def _signal_group(self, sig: int):
        # The child leads its own session, so its PID is the group ID and
        # stays valid while any member of the group is still alive.
        try:
            os.killpg(self.popen.pid, sig)
        except ProcessLookupError:
            logger.debug(f"PID {self.pid} already gone, not sending {sig}")
        except PermissionError as e:
            logger.warning(f"Cannot send signal {sig} to PID {self.pid}: {e}")

    def _kill_tree(self):
        try:
            parent = psutil.Process(self.popen.pid)
            children = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            logger.debug(f"PID {self.pid} already gone")
            return

        for proc in children + [parent]:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass
            except psutil.AccessDenied:
                logger.warning(f"Access denied killing PID {proc.pid}")
