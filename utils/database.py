import os
import sqlite3
from datetime import datetime, timezone

from utils.logger import get_logger

logger = get_logger(__name__)


def connect(db_path: str) -> sqlite3.Connection:
    """Open (creating if needed) the SQLite file shared by the stores.

    The connection may be used from the scheduler thread and the command
    bot thread; callers serialise access with their own lock.
    """
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    return sqlite3.connect(db_path, check_same_thread=False, timeout=5)


def quarantine(db_path: str) -> str:
    """Move an unreadable database file out of the way and return its new path."""
    target = f"{db_path}.corrupt"
    os.replace(db_path, target)
    logger.warning(f"Unreadable state database moved to {target}; starting empty")
    return target


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
