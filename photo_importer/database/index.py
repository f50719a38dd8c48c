import sqlite3
import logging
import threading
from pathlib import Path, PurePath
from typing import Iterator, List, Optional, Tuple, Union

from .schema import init_schema
from ..exceptions import DatabaseError, DuplicateDigestError
from ..models import DigestRecord

class DigestIndex:
    """
    Durable record of every content digest that has been archived.

    The table is an append-only journal: records are never updated or removed,
    even if the archived file later disappears from the archive tree.

    One connection is shared by every worker thread and each call holds
    self._lock while using it. That keeps the connection safe but does NOT
    make check-then-insert atomic. Callers that need that (the import
    pipeline) hold their own storage lock around both calls.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._lock = threading.Lock()

        logging.debug(f"Opening digest index: {db_path}")
        try:
            self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self.conn.execute('PRAGMA encoding = "UTF-8";')
            self.conn.execute("PRAGMA journal_mode=WAL;")
            self.conn.execute("PRAGMA synchronous=NORMAL;")
            init_schema(self.conn)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open digest index {db_path}: {e}") from e

    def exists(self, digest: str) -> bool:
        row = self._fetch_one("SELECT count(*) FROM digests WHERE digest = ?", (digest,))
        return row[0] != 0

    def insert(self, path: Union[str, PurePath], digest: str):
        """
        Registers digest -> path and commits immediately.

        Raises:
            DuplicateDigestError: the digest is already indexed.
        """
        filename = PurePath(path).as_posix()
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        "INSERT INTO digests (filename, digest) VALUES (?, ?)",
                        (filename, digest),
                    )
            except sqlite3.IntegrityError as e:
                raise DuplicateDigestError(digest, filename) from e
            except sqlite3.Error as e:
                raise DatabaseError(f"Failed to index {filename}: {e}") from e
        logging.debug(f"Indexed {digest[:16]}... -> {filename}")

    def lookup(self, digest: str) -> Optional[str]:
        """Returns the archived path recorded for a digest, if any."""
        row = self._fetch_one("SELECT filename FROM digests WHERE digest = ?", (digest,))
        return row[0] if row else None

    def count(self) -> int:
        return self._fetch_one("SELECT count(*) FROM digests")[0]

    def records(self) -> Iterator[DigestRecord]:
        for digest, filename in self._fetch_all("SELECT digest, filename FROM digests ORDER BY id"):
            yield DigestRecord(digest=digest, archived_path=filename)

    def close(self):
        with self._lock:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _fetch_one(self, sql: str, params: Tuple = ()) -> Optional[Tuple]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise DatabaseError(f"Digest index query failed: {e}") from e

    def _fetch_all(self, sql: str, params: Tuple = ()) -> List[Tuple]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise DatabaseError(f"Digest index query failed: {e}") from e
