"""Local SQLite ledger of items already sent through the pipeline.

Each item is attempted at most once: whatever the outcome (published,
rejected, classifier gave up), its key is recorded so a later run over the
same page skips it.
"""

import hashlib
import sqlite3
from pathlib import Path

from src.core.logger import logger
from src.models.datatypes import RawItem


def item_key(item: RawItem) -> str:
    """Return a stable key for ``item`` built from source, title and date."""
    raw = "\x1f".join([item.source or "", item.title.strip(), item.date or ""])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class AttemptLedger:
    """A minimal SQLite-backed set of attempted item keys with their outcome."""

    def __init__(self, db_path: str = "output/.attempts.db") -> None:
        """
        Initialize the ledger.

        Args:
            db_path (str): Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a connection to the SQLite database."""
        return sqlite3.connect(self.db_path, check_same_thread=False)

    def _init_db(self) -> None:
        """Create the attempts table if it doesn't exist."""
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS attempts (
                    item_key TEXT PRIMARY KEY,
                    outcome TEXT,
                    attempted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def seen(self, key: str) -> bool:
        """
        Check whether an item was already attempted.

        Args:
            key (str): The item key from :func:`item_key`.

        Returns:
            bool: True if the key is recorded. Lookup errors count as unseen.
        """
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM attempts WHERE item_key = ?",
                    (key,)
                ).fetchone()
                return row is not None
        except sqlite3.Error as e:
            logger.error(f"SQLite error reading ledger for key {key[:12]}: {e}")
        return False

    def record(self, key: str, outcome: str) -> None:
        """
        Store the outcome of an attempted item.

        Args:
            key (str): The item key.
            outcome (str): Outcome name, e.g. ``"PUBLISHED"``.
        """
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO attempts (item_key, outcome)
                    VALUES (?, ?)
                    """,
                    (key, outcome)
                )
        except sqlite3.Error as e:
            logger.error(f"Error saving ledger entry for key {key[:12]}: {e}")
