import sqlite3
import threading
from typing import Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.database import connect, quarantine, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS seen_fingerprints (
    mailbox      TEXT PRIMARY KEY,
    fingerprint  TEXT NOT NULL,
    updated_at   TEXT NOT NULL
)
"""

# "database is locked" and friends; worth a few quick retries before giving up
_transient_write = retry(
    retry=retry_if_exception_type(sqlite3.OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    reraise=True,
)


class SeenStore:
    """SQLite-backed map of mailbox name -> last recorded fingerprint.

    Survives restarts so content that was already seen (or notified) before a
    crash is not evaluated again from scratch. Every write is its own
    transaction, so a crash mid-write leaves the previous value readable.

    If the database cannot be opened or written, the store logs CRITICAL and
    keeps working from memory only: live notifications continue, restart
    safety is lost.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._state: dict[str, str] = {}
        self._lock = threading.Lock()
        self.conn: sqlite3.Connection | None = None
        self._open()

    @property
    def memory_only(self) -> bool:
        return self.conn is None

    # --- public API ---

    def load(self) -> dict[str, str]:
        """Read the persisted map into memory and return a copy.

        A missing file yields an empty map; so does a corrupt one (it is moved
        aside first).
        """
        with self._lock:
            if self.conn is not None:
                try:
                    rows = self.conn.execute(
                        "SELECT mailbox, fingerprint FROM seen_fingerprints"
                    ).fetchall()
                    self._state = {mailbox: fingerprint for mailbox, fingerprint in rows}
                except sqlite3.DatabaseError as e:
                    logger.error(f"Could not read seen state from {self.db_path}: {e}")
                    self._state = {}
                    self._reopen_after_corruption()
            logger.info(f"Loaded seen state for {len(self._state)} mailbox(es)")
            return dict(self._state)

    def get(self, mailbox: str) -> Optional[str]:
        with self._lock:
            return self._state.get(mailbox)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._state)

    def save(self, mailbox: str, fingerprint: str) -> None:
        """Record the fingerprint for one mailbox and flush it to disk."""
        with self._lock:
            self._state[mailbox] = fingerprint
            self._persist(
                "INSERT INTO seen_fingerprints (mailbox, fingerprint, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(mailbox) DO UPDATE SET fingerprint = excluded.fingerprint, "
                "updated_at = excluded.updated_at",
                [(mailbox, fingerprint, utc_now())],
            )
        logger.debug(f"Seen state saved: {mailbox} -> {fingerprint[:12]}")

    def flush(self) -> None:
        """Rewrite the whole in-memory map to disk in a single transaction."""
        with self._lock:
            if self.conn is None:
                return
            now = utc_now()
            rows = [(mailbox, fingerprint, now) for mailbox, fingerprint in self._state.items()]
            try:
                self._replace_all(rows)
            except sqlite3.Error as e:
                self._degrade(e)

    def forget(self, mailbox: str) -> bool:
        """Drop a mailbox's entry, returning it to the never-seen state."""
        with self._lock:
            existed = self._state.pop(mailbox, None) is not None
            self._persist("DELETE FROM seen_fingerprints WHERE mailbox = ?", [(mailbox,)])
        if existed:
            logger.info(f"Cleared seen state for {mailbox}")
        return existed

    def close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    # --- internals ---

    def _open(self) -> None:
        try:
            self.conn = connect(self.db_path)
            self.conn.execute(_CREATE_TABLE_SQL)
            self.conn.commit()
        except sqlite3.OperationalError as e:
            self._degrade(e)
        except sqlite3.DatabaseError as e:
            logger.error(f"State database {self.db_path} is unreadable: {e}")
            self._reopen_after_corruption()
        except OSError as e:
            self._degrade(e)

    def _reopen_after_corruption(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
        try:
            quarantine(self.db_path)
            self.conn = connect(self.db_path)
            self.conn.execute(_CREATE_TABLE_SQL)
            self.conn.commit()
        except (OSError, sqlite3.Error) as e:
            self._degrade(e)

    def _persist(self, sql: str, params: list[tuple]) -> None:
        if self.conn is None:
            return
        try:
            self._write(sql, params)
        except sqlite3.Error as e:
            self._degrade(e)

    @_transient_write
    def _write(self, sql: str, params: list[tuple]) -> None:
        with self.conn:
            self.conn.executemany(sql, params)

    @_transient_write
    def _replace_all(self, rows: list[tuple]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM seen_fingerprints")
            self.conn.executemany(
                "INSERT INTO seen_fingerprints (mailbox, fingerprint, updated_at) VALUES (?, ?, ?)",
                rows,
            )

    def _degrade(self, error: Exception) -> None:
        logger.critical(
            f"Cannot persist seen state to {self.db_path}: {error}. "
            "Continuing in memory only; already-notified messages may be re-sent after a restart."
        )
        if self.conn is not None:
            try:
                self.conn.close()
            except sqlite3.Error:
                pass
        self.conn = None
