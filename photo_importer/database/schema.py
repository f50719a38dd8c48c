"""
Digest index schema.
"""
import sqlite3
import logging

def init_schema(conn: sqlite3.Connection):
    """
    Provisions the digests table and its indexes.
    Idempotent: safe to run on every startup.
    """
    with conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS digests (
            id          INTEGER PRIMARY KEY,
            filename    TEXT,           -- Path relative to the archive root
            digest      TEXT            -- SHA-512 hex of the full content
        );
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS digests_filename ON digests(filename);")
        conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS digests_digest ON digests(digest);")

    logging.debug("Digest index schema initialized.")
