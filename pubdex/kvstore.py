"""A persistent byte key-value store and a write batch with a read cache."""

from __future__ import annotations

import os
import sqlite3
import threading
from collections.abc import Iterable, Sequence

from .errors import DBError

_DB_FILE = "pubdex.sqlite3"

Operation = tuple[bytes, "bytes | None"]


class Store:
    """Byte keys mapped to byte values, kept in a directory on disk.

    The special path ``":memory:"`` keeps everything in memory.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()
        try:
            if path == ":memory:":
                target = path
            else:
                os.makedirs(path, exist_ok=True)
                target = os.path.join(path, _DB_FILE)
            self._conn = sqlite3.connect(target, check_same_thread=False)
            with self._conn:
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL)"
                )
        except (OSError, sqlite3.Error) as exc:
            raise DBError(f"Failed to open database at {path}: {exc}") from exc

    def get(self, key: bytes) -> bytes | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (bytes(key),)
                ).fetchone()
        except sqlite3.Error as exc:
            raise DBError(str(exc)) from exc
        return None if row is None else bytes(row[0])

    def multi_get(self, keys: Iterable[bytes]) -> list[bytes | None]:
        """Look up several keys; results follow the order of ``keys``."""
        return [self.get(key) for key in keys]

    def put(self, key: bytes, value: bytes) -> None:
        self._apply([(bytes(key), bytes(value))])

    def delete(self, key: bytes) -> None:
        self._apply([(bytes(key), None)])

    def write(self, batch: StagedBatch | Iterable[Operation]) -> None:
        """Apply every operation of a batch atomically and in order."""
        operations = batch.operations() if isinstance(batch, StagedBatch) else list(batch)
        self._apply(operations)

    def _apply(self, operations: Sequence[Operation]) -> None:
        try:
            with self._lock, self._conn:
                for key, value in operations:
                    if value is None:
                        self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                    else:
                        self._conn.execute(
                            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                            (key, value),
                        )
        except sqlite3.Error as exc:
            raise DBError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class StagedBatch:
    """Pending writes with a cache that reads fall through to the store."""

    def __init__(self, store: Store):
        self.store = store
        self._cache: dict[bytes, bytes] = {}
        self._operations: list[Operation] = []

    def get_from_cache(self, key: bytes) -> bytes | None:
        """Read a value staged in this batch; never touches the store."""
        return self._cache.get(bytes(key))

    def multi_get_from_cache(self, keys: Iterable[bytes]) -> list[bytes | None]:
        return [self.get_from_cache(key) for key in keys]

    def put(self, key: bytes, value: bytes) -> None:
        key, value = bytes(key), bytes(value)
        self._operations.append((key, value))
        self._cache[key] = value

    def delete(self, key: bytes) -> None:
        key = bytes(key)
        self._operations.append((key, None))
        self._cache.pop(key, None)

    def get(self, key: bytes) -> bytes | None:
        """Read from the batch cache, falling back to the store."""
        cached = self.get_from_cache(key)
        if cached is not None:
            return cached
        return self.store.get(key)

    def multi_get(self, keys: Iterable[bytes]) -> list[bytes | None]:
        keys = [bytes(key) for key in keys]
        results: dict[bytes, bytes | None] = {
            key: value
            for key, value in zip(keys, self.multi_get_from_cache(keys))
            if value is not None
        }
        misses = [key for key in keys if key not in results]
        results.update(zip(misses, self.store.multi_get(misses)))
        return [results.get(key) for key in keys]

    def operations(self) -> list[Operation]:
        """Staged operations in order; a value of None marks a delete."""
        return list(self._operations)


def create_database(path: str) -> Store:
    """Open the store at ``path``, creating it if missing."""
    return Store(path)