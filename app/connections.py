"""Read-only handles to user SQLite files, cached per connection id."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from app.exceptions import InvalidInputError, QueryExecutionError

logger = logging.getLogger(__name__)

# Number of SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000


def open_read_only(path: str) -> sqlite3.Connection:
    """Open a SQLite file in read-only mode, rejecting missing or non-SQLite files."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise InvalidInputError(f"Database file does not exist: {path}")

    uri = f"{file_path.resolve().as_uri()}?mode=ro"
    db = sqlite3.connect(uri, uri=True, check_same_thread=False)
    db.row_factory = sqlite3.Row
    try:
        # Forces SQLite to read the header; fails fast on non-database files.
        db.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
    except sqlite3.DatabaseError as exc:
        db.close()
        raise InvalidInputError(f"Not a valid SQLite database: {path} ({exc})") from exc
    return db


def _was_interrupted(exc: BaseException | None) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "interrupt" in str(exc).lower()


@contextmanager
def query_deadline(db: sqlite3.Connection, seconds: float | None) -> Iterator[None]:
    """Interrupt any statement on ``db`` still running after ``seconds``.

    SQLite has no per-statement timeout, so a progress handler aborts the
    statement and the resulting "interrupted" error is reported as a timeout.
    """
    if not seconds or seconds <= 0:
        yield
        return

    deadline = time.monotonic() + seconds
    db.set_progress_handler(lambda: int(time.monotonic() > deadline), _PROGRESS_STEPS)
    try:
        yield
    except (sqlite3.OperationalError, QueryExecutionError) as exc:
        cause = exc if isinstance(exc, sqlite3.OperationalError) else exc.__cause__
        if _was_interrupted(cause) and time.monotonic() > deadline:
            raise QueryExecutionError(
                f"Query exceeded the {seconds:g} second time limit"
            ) from exc
        raise
    finally:
        db.set_progress_handler(None, _PROGRESS_STEPS)


@dataclass
class _CachedHandle:
    connection_id: int
    path: str
    db: sqlite3.Connection
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Operations currently holding this handle; guarded by the cache lock.
    users: int = 0
    evicted: bool = False


class ConnectionCache:
    """LRU cache of read-only SQLite handles keyed by connection id.

    A handle is pinned while an operation uses it. Eviction, removal of its
    connection and shutdown only unlink it from the cache; it is closed at once
    when idle, otherwise by the last operation to release it.
    """

    def __init__(self, capacity: int = 8, timeout_seconds: float | None = 5.0) -> None:
        if capacity < 1:
            raise ValueError("Connection cache capacity must be at least 1")
        self.capacity = capacity
        self.timeout_seconds = timeout_seconds
        self._handles: OrderedDict[int, _CachedHandle] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._handles

    def _unlink(self, handle: _CachedHandle) -> bool:
        """Mark an already removed handle evicted; True if it can be closed now."""
        handle.evicted = True
        return handle.users == 0

    def _checkout(self, connection_id: int, path: str) -> _CachedHandle:
        idle: list[_CachedHandle] = []
        try:
            with self._lock:
                handle = self._handles.get(connection_id)
                if handle is not None and handle.path != path:
                    del self._handles[connection_id]
                    if self._unlink(handle):
                        idle.append(handle)
                    handle = None

                if handle is None:
                    logger.info("Opening database %s for connection %s", path, connection_id)
                    handle = _CachedHandle(
                        connection_id=connection_id, path=path, db=open_read_only(path)
                    )
                    self._handles[connection_id] = handle
                else:
                    self._handles.move_to_end(connection_id)
                handle.users += 1

                while len(self._handles) > self.capacity:
                    evicted_id, evicted = self._handles.popitem(last=False)
                    logger.info("Evicting connection %s from cache", evicted_id)
                    if self._unlink(evicted):
                        idle.append(evicted)
                return handle
        finally:
            for stale in idle:
                self._close_handle(stale)

    def _release(self, handle: _CachedHandle) -> None:
        with self._lock:
            handle.users -= 1
            close_now = handle.evicted and handle.users == 0
        if close_now:
            self._close_handle(handle)

    @contextmanager
    def acquire(self, connection_id: int, path: str) -> Iterator[sqlite3.Connection]:
        """Yield the handle for one operation, serialized and under the query deadline.

        The handle stays open until the operation finishes, even if it is
        evicted meanwhile.
        """
        handle = self._checkout(connection_id, path)
        try:
            with handle.lock:
                with query_deadline(handle.db, self.timeout_seconds):
                    yield handle.db
        finally:
            self._release(handle)

    def discard(self, connection_id: int) -> None:
        """Forget the handle for a connection, closing it once it is idle."""
        with self._lock:
            handle = self._handles.pop(connection_id, None)
            close_now = handle is not None and self._unlink(handle)
        if close_now:
            self._close_handle(handle)

    def close(self) -> None:
        """Forget every cached handle, closing each once it is idle."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            idle = [handle for handle in handles if self._unlink(handle)]
        for handle in idle:
            self._close_handle(handle)

    @staticmethod
    def _close_handle(handle: _CachedHandle) -> None:
        try:
            handle.db.close()
        except sqlite3.Error as exc:
            logger.warning("Failed to close connection %s: %s", handle.connection_id, exc)
