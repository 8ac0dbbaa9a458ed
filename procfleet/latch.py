"""
One-shot broadcast signals.

A Latch starts open and can be tripped exactly once. Every thread waiting
on it wakes when it trips, and it stays tripped for good. ``wait_any``
waits for the first of several latches without polling.
"""

import threading
from typing import Callable, Optional


class Latch:
    """Idempotent, thread-safe, one-shot broadcast signal."""

    def __init__(self, name: str = ""):
        self.name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []

    def __repr__(self):
        state = "tripped" if self.is_set() else "open"
        return f"<Latch {self.name or hex(id(self))} {state}>"

    def trip(self) -> bool:
        """Trip the latch. Returns True only for the call that tripped it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            listeners = list(self._listeners)

        for listener in listeners:
            listener()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def add_listener(self, listener: Callable[[], None]):
        """Call ``listener`` when the latch trips (immediately if it already has)."""
        with self._lock:
            if not self._event.is_set():
                self._listeners.append(listener)
                return
        listener()

    def remove_listener(self, listener: Callable[[], None]):
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass


def wait_any(*latches: Latch, timeout: Optional[float] = None) -> Optional[Latch]:
    """
    Block until one of ``latches`` trips or ``timeout`` elapses.

    Returns the tripped latch, or None on timeout. When several are tripped
    the earliest in argument order wins.
    """
    wake = threading.Event()
    for latch in latches:
        latch.add_listener(wake.set)

    try:
        wake.wait(timeout)
        for latch in latches:
            if latch.is_set():
                return latch
        return None
    finally:
        for latch in latches:
            latch.remove_listener(wake.set)
