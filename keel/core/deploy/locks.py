"""
Serialización de RollingOut por target.

La topología renderizada en un target es compartida por todos los repos que despliegan
ahí; su read-merge-write no debe intercalarse entre deploys concurrentes.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class TargetLocks:
    """Un mutex por target, creado bajo demanda."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def for_target(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.for_target(key)
        with lock:
            yield
