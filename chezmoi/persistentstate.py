"""Persistent key-value state, organised in buckets."""

from __future__ import annotations

import abc
import os
import sqlite3


class PersistentState(abc.ABC):
    """A persistent store of values keyed by bucket and key."""

    @abc.abstractmethod
    def delete(self, bucket: bytes, key: bytes) -> None:
        """Delete the value for key in bucket, if any."""

    @abc.abstractmethod
    def get(self, bucket: bytes, key: bytes) -> bytes | None:
        """Return the value for key in bucket, or None."""

    @abc.abstractmethod
    def set(self, bucket: bytes, key: bytes, value: bytes) -> None:
        """Set the value for key in bucket, creating the bucket if needed."""


class DatabasePersistentState(PersistentState):
    """A persistent state stored in an SQLite database file.

    The file is only created when a value is first set.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = os.fspath(path)
        self.perm = 0o600
        self._db: sqlite3.Connection | None = None
        try:
            os.stat(self.path)
        except FileNotFoundError:
            return
        self._open()

    def __enter__(self) -> DatabasePersistentState:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the database, if it is open."""
        if self._db is not None:
            self._db.close()
            self._db = None

    def delete(self, bucket, key):
        if self._db is None:
            return
        with self._db:
            self._db.execute(
                "DELETE FROM state WHERE bucket = ? AND key = ?",
                (bytes(bucket), bytes(key)),
            )

    def get(self, bucket, key):
        if self._db is None:
            return None
        row = self._db.execute(
            "SELECT value FROM state WHERE bucket = ? AND key = ?",
            (bytes(bucket), bytes(key)),
        ).fetchone()
        return None if row is None else bytes(row[0])

    def set(self, bucket, key, value):
        if self._db is None:
            self._open()
        with self._db:
            self._db.execute(
                "INSERT OR REPLACE INTO state (bucket, key, value) VALUES (?, ?, ?)",
                (bytes(bucket), bytes(key), bytes(value)),
            )

    def _open(self) -> None:
        parent = os.path.dirname(self.path)
        if parent and not os.path.exists(parent):
            os.makedirs(parent, 0o755, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, self.perm)
        os.close(fd)
        db = sqlite3.connect(self.path)
        try:
            with db:
                db.execute(
                    "CREATE TABLE IF NOT EXISTS state ("
                    "bucket BLOB NOT NULL, key BLOB NOT NULL, value BLOB NOT NULL, "
                    "PRIMARY KEY (bucket, key))"
                )
        except sqlite3.Error:
            db.close()
            raise
        self._db = db