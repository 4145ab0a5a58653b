import sqlite3
import threading
from typing import Iterable, Optional

from models.data_models import MailboxRecord
from utils.database import connect, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


class MailboxDirectory:
    """SQLite-backed, ordered list of watched mailboxes.

    Names are unique. Order is insertion order, which is the order the poll
    scheduler visits them in. The scheduler re-reads the list every tick, so
    edits made by the command bot take effect on the next tick.

    If the database file cannot be opened the directory lives in an
    in-memory database for the rest of the process, with a CRITICAL log.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.memory_only = False
        try:
            self.conn = connect(db_path)
            self._create_table()
        except (OSError, sqlite3.Error) as e:
            logger.critical(
                f"Cannot open mailbox directory at {db_path}: {e}. "
                "Continuing in memory only; mailboxes added now are lost on restart."
            )
            self.conn = sqlite3.connect(":memory:", check_same_thread=False)
            self.memory_only = True
            self._create_table()
        self._lock = threading.Lock()

    def _create_table(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS mailboxes (
                position  INTEGER PRIMARY KEY AUTOINCREMENT,
                name      TEXT NOT NULL UNIQUE,
                account   TEXT NOT NULL,
                added_at  TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def mailboxes(self) -> list[MailboxRecord]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT name, account FROM mailboxes ORDER BY position"
            ).fetchall()
        return [MailboxRecord(name=name, account=account) for name, account in rows]

    def get(self, name: str) -> Optional[MailboxRecord]:
        with self._lock:
            row = self.conn.execute(
                "SELECT name, account FROM mailboxes WHERE name = ?", (name,)
            ).fetchone()
        return MailboxRecord(name=row[0], account=row[1]) if row else None

    def add(self, records: Iterable[MailboxRecord]) -> tuple[int, int]:
        """Insert records whose name is not saved yet.

        Returns:
            (added, skipped) counts. Duplicates inside the batch count as skipped.
        """
        added = skipped = 0
        now = utc_now()
        with self._lock, self.conn:
            for record in records:
                cursor = self.conn.execute(
                    "INSERT OR IGNORE INTO mailboxes (name, account, added_at) VALUES (?, ?, ?)",
                    (record.name, record.account, now),
                )
                if cursor.rowcount:
                    added += 1
                else:
                    skipped += 1
        logger.info(f"Mailbox directory: added {added}, skipped {skipped}")
        return added, skipped

    def remove(self, names: Iterable[str]) -> list[str]:
        """Delete the named mailboxes and return the names that were actually present."""
        removed = []
        with self._lock, self.conn:
            for name in dict.fromkeys(names):
                cursor = self.conn.execute("DELETE FROM mailboxes WHERE name = ?", (name,))
                if cursor.rowcount:
                    removed.append(name)
        logger.info(f"Mailbox directory: removed {len(removed)}")
        return removed

    def clear(self) -> list[str]:
        """Delete every mailbox and return their names."""
        with self._lock, self.conn:
            names = [row[0] for row in self.conn.execute("SELECT name FROM mailboxes ORDER BY position")]
            self.conn.execute("DELETE FROM mailboxes")
        logger.info(f"Mailbox directory cleared ({len(names)} removed)")
        return names

    def close(self) -> None:
        self.conn.close()
