"""Keyed locks for the booking and payment units of work.

A scope key is a tuple such as ``("doctor", 7, date(2025, 9, 10))`` or
``("bill", 12)``. Holders of the same key are serialized; different keys
never block each other. Several keys are always taken in sorted order so two
requests that need overlapping scopes cannot deadlock.

This only serializes work inside one process. Services pair it with
``SELECT ... FOR UPDATE`` row locks so that several workers sharing a
PostgreSQL database are serialized as well.
"""
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Tuple
import logging
import threading

from .config import settings
from .exceptions import ResourceBusy

logger = logging.getLogger(__name__)


class KeyedLockRegistry:
    """In-memory registry of per-scope locks, reference counted."""

    def __init__(self, timeout: float = None):
        self.timeout = timeout if timeout is not None else settings.LOCK_TIMEOUT_SECONDS
        # {key: [lock, holders_and_waiters]}
        self._locks: Dict[Hashable, List] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable):
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: Tuple) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block."""
        ordered = sorted(set(keys), key=repr)
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=self.timeout):
                    self._checkin(key)
                    logger.warning(f"Timed out waiting for lock on {key}")
                    raise ResourceBusy(_describe(key))
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)

    def active_keys(self) -> List[Hashable]:
        with self._guard:
            return list(self._locks)


def doctor_scope(doctor_id: int, on_date) -> Tuple:
    return ("doctor", doctor_id, on_date.isoformat())


def bill_scope(bill_id: int) -> Tuple:
    return ("bill", bill_id)


def appointment_scope(appointment_id: int) -> Tuple:
    return ("appointment", appointment_id)


def _describe(key: Tuple) -> str:
    kind, *rest = key
    return f"{kind.capitalize()} {' '.join(str(part) for part in rest)}"


# Shared by every service in the process
scope_locks = KeyedLockRegistry()
