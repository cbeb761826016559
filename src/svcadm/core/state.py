"""Shared state cells guarded by read/write locks."""

import threading
from contextlib import contextmanager
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class ReadWriteLock:
    """Non-reentrant read/write lock that prefers waiting writers.

    Any number of readers may hold the lock at once; a writer holds it alone.
    Re-acquiring from a thread that already holds it deadlocks.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class Guarded(Generic[T]):
    """Single value behind a read/write lock."""

    def __init__(self, value: Optional[T] = None):
        self._lock = ReadWriteLock()
        self._value = value

    def get(self) -> Optional[T]:
        with self._lock.read_locked():
            return self._value

    def set(self, value: T) -> None:
        with self._lock.write_locked():
            self._value = value

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock
