# per-user credential storage
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path

from immich_bridge.errors import CredentialStoreError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS user_config(
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id TEXT UNIQUE NOT NULL,
  base_url TEXT NOT NULL,
  api_key TEXT NOT NULL,
  created_ts DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_ts DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


@dataclass(frozen=True)
class Credentials:
    """Immich connection details for one user."""

    base_url: str
    api_key: str = field(repr=False)

    def __post_init__(self):
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


class CredentialStore:
    """
    Thread-safe SQLite store of Immich credentials, one row per user.

    Uses thread-local connections so each thread has its own connection.
    For write operations, uses a lock to serialize access.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._write_lock = threading.Lock()

        conn = self._get_conn()
        conn.executescript(SCHEMA)
        conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0,  # Wait up to 30s if database is locked
            )
        conn: sqlite3.Connection = self._local.conn
        return conn

    def get(self, user_id: str) -> Credentials | None:
        """Return the stored credentials for a user, or None if not configured."""
        try:
            conn = self._get_conn()
            row = conn.execute(
                "SELECT base_url, api_key FROM user_config WHERE user_id=?", (user_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise CredentialStoreError(f"Failed to read configuration: {e}") from e
        if row is None:
            return None
        return Credentials(base_url=row[0], api_key=row[1])

    def save(self, user_id: str, base_url: str, api_key: str) -> Credentials:
        """Insert or update a user's credentials."""
        creds = Credentials(base_url=base_url, api_key=api_key)
        try:
            with self._write_lock:
                conn = self._get_conn()
                conn.execute(
                    "INSERT INTO user_config(user_id, base_url, api_key) VALUES(?,?,?) "
                    "ON CONFLICT(user_id) DO UPDATE SET base_url=excluded.base_url, "
                    "api_key=excluded.api_key, updated_ts=CURRENT_TIMESTAMP",
                    (user_id, creds.base_url, creds.api_key),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise CredentialStoreError(f"Failed to save configuration: {e}") from e
        logger.info(f"Saved Immich configuration for user {user_id} ({creds.base_url})")
        return creds

    def delete(self, user_id: str) -> bool:
        """Remove a user's credentials. Returns True if a row was deleted."""
        try:
            with self._write_lock:
                conn = self._get_conn()
                cur = conn.execute("DELETE FROM user_config WHERE user_id=?", (user_id,))
                conn.commit()
        except sqlite3.Error as e:
            raise CredentialStoreError(f"Failed to delete configuration: {e}") from e
        deleted = cur.rowcount > 0
        if deleted:
            logger.info(f"Deleted Immich configuration for user {user_id}")
        return deleted

    def close(self):
        """Close the thread-local database connection."""
        if hasattr(self._local, "conn") and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None
