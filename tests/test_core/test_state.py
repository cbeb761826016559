"""Tests for the read/write lock and guarded cells."""

import threading
import time

from svcadm.core.state import Guarded, ReadWriteLock


def test_readers_share_the_lock():
    """Test several readers hold the lock at the same time."""
    lock = ReadWriteLock()
    lock.acquire_read()
    acquired = threading.Event()

    def reader():
        with lock.read_locked():
            acquired.set()

    thread = threading.Thread(target=reader)
    thread.start()
    assert acquired.wait(timeout=2)
    thread.join()
    lock.release_read()


def test_writer_waits_for_readers():
    """Test a writer waits until readers release the lock."""
    lock = ReadWriteLock()
    lock.acquire_read()
    written = threading.Event()

    def writer():
        with lock.write_locked():
            written.set()

    thread = threading.Thread(target=writer)
    thread.start()
    time.sleep(0.05)
    assert not written.is_set()
    lock.release_read()
    assert written.wait(timeout=2)
    thread.join()


def test_waiting_writer_blocks_new_readers():
    """Test a waiting writer blocks readers that arrive after it."""
    lock = ReadWriteLock()
    lock.acquire_read()
    order = []

    def writer():
        with lock.write_locked():
            order.append("writer")

    def reader():
        with lock.read_locked():
            order.append("reader")

    writer_thread = threading.Thread(target=writer)
    writer_thread.start()
    time.sleep(0.05)
    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    time.sleep(0.05)
    assert order == []
    lock.release_read()
    writer_thread.join(timeout=2)
    reader_thread.join(timeout=2)
    assert order == ["writer", "reader"]


def test_guarded_cell():
    """Test guarded cells store and return values."""
    cell = Guarded()
    assert cell.get() is None
    cell.set({"a": 1})
    assert cell.get() == {"a": 1}
    assert isinstance(cell.lock, ReadWriteLock)
