"""
Group supervision.

Starts one coordination thread per replica of every Procfile entry and
tears the whole group down together. Shutdown is driven by two latches:
``teardown`` (first ctrl-c, or any replica exiting while restarts are off)
asks every child to stop with SIGTERM; ``teardown_now`` (second ctrl-c)
cuts the grace period short and kills whatever is left.
"""

import logging
import queue
import signal
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .config import Config, ConfigurationError
from .env import child_environment
from .latch import Latch, wait_any
from .outlet import OutletFactory
from .process import HAVE_SIGTERM, Process
from .procfile import Procfile, ProcfileEntry

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_GRACE_TIME = 3.0
DEFAULT_PORT_STEP = 100


class ReplicaState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    STOPPING = "stopping"
    KILLED = "killed"
    DONE = "done"


@dataclass(frozen=True)
class ReplicaKey:
    """Position of a replica: Procfile entry index and replica index, both zero-based."""

    template_index: int
    replica_index: int


@dataclass
class Replica:
    """One supervised replica of a Procfile entry."""

    key: ReplicaKey
    entry: ProcfileEntry
    port: int
    state: ReplicaState = ReplicaState.STARTING
    process: Optional[Process] = None
    starts: int = 0

    @property
    def name(self) -> str:
        return f"{self.entry.name}.{self.key.replica_index + 1}"


class Supervisor:
    """Runs a Procfile's processes as one group."""

    def __init__(
        self,
        outlets: OutletFactory,
        env: Optional[dict[str, str]] = None,
        root: Optional[Path] = None,
        port: int = 5000,
        restart: bool = False,
        shutdown_grace_time: float = DEFAULT_SHUTDOWN_GRACE_TIME,
        restart_delay: float = 0,
        port_step: int = DEFAULT_PORT_STEP,
    ):
        self.outlets = outlets
        self.env = dict(env or {})
        self.root = root
        self.port = port
        self.port_step = port_step
        self.restart = restart
        self.shutdown_grace_time = shutdown_grace_time
        self.restart_delay = restart_delay

        self.teardown = Latch("teardown")
        self.teardown_now = Latch("teardown-now")

        self.replicas: list[Replica] = []
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._interrupts: queue.SimpleQueue = queue.SimpleQueue()
        self._monitor: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: Config, outlets: OutletFactory, env: dict[str, str]) -> "Supervisor":
        return cls(
            outlets,
            env=env,
            root=config.root,
            port=config.port,
            restart=config.restart,
            shutdown_grace_time=config.shutdown_grace_time,
            restart_delay=config.restart_delay,
            port_step=config.port_step,
        )

    # Shutdown signalling

    def signal_shutdown(self):
        """Begin a graceful teardown of the group. Safe to call repeatedly from any thread."""
        if self.teardown.trip():
            logger.info("Teardown started")

    def install_signal_handlers(self):
        """Route SIGINT (and SIGTERM where it exists) to the interrupt monitor. Main thread only."""
        for name in ("SIGINT", "SIGTERM"):
            signum = getattr(signal, name, None)
            if signum is not None:
                signal.signal(signum, self._handle_signal)

    def _handle_signal(self, signum, frame):
        # SimpleQueue.put is reentrant, so this is safe inside a signal handler
        self._interrupts.put(signum)

    def notify_interrupt(self):
        """Deliver an interrupt as if ctrl-c had been pressed."""
        self._interrupts.put(signal.SIGINT)

    def start_interrupt_monitor(self) -> threading.Thread:
        if self._monitor is None:
            self._monitor = threading.Thread(
                target=self._monitor_interrupts,
                name="interrupt-monitor",
                daemon=True,
            )
            self._monitor.start()
        return self._monitor

    def _monitor_interrupts(self):
        """Escalate interrupts: the first tears down, any later one kills."""
        first = True
        try:
            while True:
                signum = self._interrupts.get()
                logger.info(f"Received signal {signum}")
                self.outlets.system_output("ctrl-c detected")

                if not first:
                    self.teardown_now.trip()
                self.signal_shutdown()
                first = False
        except Exception:
            logger.exception("Interrupt monitor failed")
            self.teardown_now.trip()
            self.signal_shutdown()

    # Fan-out

    def port_for(self, key: ReplicaKey) -> int:
        return self.port + key.template_index * self.port_step

    def start(
        self,
        procfile: Procfile,
        concurrency: Optional[dict[str, int]] = None,
        only: Optional[str] = None,
    ) -> list[Replica]:
        """Launch every replica (or only those of process type ``only``)."""
        concurrency = concurrency or {}

        if only and not procfile.has_process(only):
            raise ConfigurationError(f"no such process: {only}")

        for name in concurrency:
            if not procfile.has_process(name):
                logger.warning(f"Concurrency given for unknown process {name}")

        launched = []
        for idx, entry in enumerate(procfile):
            if only and entry.name != only:
                continue

            for n in range(concurrency.get(entry.name, 1)):
                key = ReplicaKey(idx, n)
                replica = Replica(key=key, entry=entry, port=self.port_for(key))
                self._spawn(replica)
                launched.append(replica)

        logger.info(f"Launched {len(launched)} replicas")
        return launched

    def _spawn(self, replica: Replica):
        thread = threading.Thread(
            target=self._supervise,
            args=(replica,),
            name=f"replica-{replica.name}",
            daemon=True,
        )
        with self._lock:
            self.replicas.append(replica)
            self._threads.append(thread)
        thread.start()

    def wait(self):
        """Block until teardown begins, then until every replica has been reaped."""
        self.teardown.wait()
        self.outlets.system_output("shutting down")
        self.join()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for all coordination threads. Returns False if any is still running."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            threads = list(self._threads)

        for thread in threads:
            remaining = None if deadline is None else max(0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(thread.is_alive() for thread in threads)

    # Per-replica coordination

    def _supervise(self, replica: Replica):
        """Run one replica until the group tears down."""
        try:
            while not self.teardown.is_set():
                process, exited = self._launch(replica)
                try:
                    if not self._run(replica, process, exited):
                        return
                finally:
                    # Never finish with a live or unreaped child.
                    exited.wait()
        except Exception:
            logger.exception(f"Supervision of {replica.name} failed")
            self.signal_shutdown()
        finally:
            replica.state = ReplicaState.DONE
            logger.debug(f"{replica.name} done")

    def _launch(self, replica: Replica) -> tuple[Process, Latch]:
        replica.state = ReplicaState.STARTING
        idx = replica.key.template_index

        process = Process(
            replica.entry.command,
            env=child_environment(self.env, replica.port),
            root=self.root,
            stdout=self.outlets.create_outlet(replica.name, idx, False),
            stderr=self.outlets.create_outlet(replica.name, idx, True),
        )
        replica.process = process
        replica.starts += 1
        exited = Latch(f"{replica.name} exited")

        self.outlets.system_output(f"starting {replica.name} on port {replica.port}")

        try:
            process.start()
        except OSError as e:
            logger.error(f"Failed to start {replica.name}: {e}")
            process.stderr.write_line(f"failed to start: {e}")
            exited.trip()
            return process, exited

        replica.state = ReplicaState.RUNNING
        threading.Thread(
            target=self._watch,
            args=(replica, process, exited),
            name=f"wait-{replica.name}",
            daemon=True,
        ).start()
        return process, exited

    def _watch(self, replica: Replica, process: Process, exited: Latch):
        try:
            returncode = process.wait()
            logger.info(f"{replica.name} (PID {process.pid}) exited with code {returncode}")
        finally:
            exited.trip()

    def _run(self, replica: Replica, process: Process, exited: Latch) -> bool:
        """Race the child's exit against teardown. Returns True to relaunch."""
        if wait_any(exited, self.teardown) is exited:
            replica.state = ReplicaState.EXITED
            if not self.restart:
                self.signal_shutdown()
                return False
            if self.teardown.is_set():
                return False
            return self._pause_before_restart()

        self._stop(replica, process, exited)
        return False

    def _pause_before_restart(self) -> bool:
        if self.restart_delay <= 0:
            return True
        return wait_any(self.teardown, timeout=self.restart_delay) is None

    def _stop(self, replica: Replica, process: Process, exited: Latch):
        replica.state = ReplicaState.STOPPING

        if not HAVE_SIGTERM:
            self._kill(replica, process)
            return

        self.outlets.system_output(f"sending SIGTERM to {replica.name}")
        process.send_sigterm()

        # Give the process a chance to exit, otherwise kill it.
        if wait_any(exited, self.teardown_now, timeout=self.shutdown_grace_time) is exited:
            replica.state = ReplicaState.EXITED
            return
        self._kill(replica, process)

    def _kill(self, replica: Replica, process: Process):
        self.outlets.system_output(f"Killing {replica.name}")
        process.send_sigkill()
        replica.state = ReplicaState.KILLED
