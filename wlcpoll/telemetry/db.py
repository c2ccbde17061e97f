"""
SQLite Store for Telemetry Snapshots
====================================

Owns the database file and hands out configured connections. Every cycle
opens its own connection through this manager, so the scheduler thread and
the cycle thread never share a connection object.

Connection Strategy
-------------------
    - get_connection(): New configured connection, caller closes it
    - connection(): Transaction block that commits on success, rolls back
      on any exception and always closes
    - execute_query(): One statement in its own transaction

The ``connection()`` block is the unit of atomicity: the snapshot writer
performs a whole cycle's inserts inside one block, so a failure anywhere
leaves no rows behind.

WAL Mode
--------
Write-Ahead Logging is enabled so external readers (reporting scripts,
sqlite3 shell) never block the poller's commit.

Usage
-----
    from wlcpoll.telemetry.db import TelemetryDB

    db = TelemetryDB("/var/lib/wlcpoll/wifi.db")

    with db.connection() as conn:
        conn.execute("INSERT INTO clients (...) VALUES (...)", params)

    rows = db.execute_query("SELECT * FROM access_points WHERE snapshot_time = ?", (ts,))
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

logger = logging.getLogger("Telemetry.DB")

SQLITE_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "busy_timeout": 30000,          # ms a writer waits on a locked file
}

FETCH_MODES = ("all", "one", "rowcount")


class TelemetryDBError(Exception):
    """Base exception for snapshot store errors."""
    pass


class ConnectionError(TelemetryDBError):
    """Database file could not be created or opened."""
    pass


class QueryError(TelemetryDBError):
    """A statement run through execute_query failed."""
    pass


class TelemetryDB:
    """
    Connection manager for the snapshot database.

    Attributes:
        db_path: Location of the SQLite file

    Example:
        >>> db = TelemetryDB("/var/lib/wlcpoll/wifi.db")
        >>> with db.connection() as conn:
        ...     count = conn.execute("SELECT COUNT(*) FROM clients").fetchone()[0]
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Args:
            db_path: SQLite file. Missing parent directories and the file
                     itself are created.
        """
        self.db_path = Path(db_path)
        self._create_file()

        logger.info(f"TelemetryDB ready: {self.db_path}")

    def _create_file(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            if not self.db_path.exists():
                self.db_path.touch()
                logger.info(f"Created snapshot database: {self.db_path}")
        except OSError as e:
            raise ConnectionError(f"Cannot create {self.db_path}: {e}") from e

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        for pragma, value in SQLITE_PRAGMAS.items():
            try:
                conn.execute(f"PRAGMA {pragma} = {value}")
            except sqlite3.Error as e:
                logger.warning(f"PRAGMA {pragma} not applied: {e}")

        conn.row_factory = sqlite3.Row

    def get_connection(self) -> sqlite3.Connection:
        """
        Open a connection with pragmas and row factory applied.

        Raises:
            ConnectionError: If sqlite cannot open the file
        """
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False,  # cycles run on their own threads
            )
        except sqlite3.Error as e:
            logger.error(f"Cannot open snapshot database: {e}")
            raise ConnectionError(f"Cannot connect to {self.db_path}: {e}") from e

        self._apply_pragmas(conn)
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Transaction block.

        Commits when the block exits normally, rolls back when it raises,
        and closes the connection either way.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def execute_query(
        self,
        query: str,
        params: Tuple = (),
        fetch: str = "all",
    ) -> Union[List[sqlite3.Row], Optional[sqlite3.Row], int]:
        """
        Run one statement in its own transaction.

        Args:
            query: SQL text
            params: Bound parameters
            fetch: "all" (list of rows), "one" (row or None) or "rowcount"

        Raises:
            QueryError: If sqlite rejects the statement
        """
        if fetch not in FETCH_MODES:
            raise ValueError(f"Unknown fetch mode: {fetch}")

        try:
            with self.connection() as conn:
                cursor = conn.execute(query, params)
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "rowcount":
                    return cursor.rowcount
                return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Statement failed: {e} [{query.strip()[:200]}]")
            raise QueryError(f"Statement failed: {e}") from e

    def table_exists(self, table_name: str) -> bool:
        row = self.execute_query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
            fetch="one",
        )
        return row is not None

    def column_names(self, table_name: str) -> List[str]:
        return [row["name"] for row in self.execute_query(f"PRAGMA table_info({table_name})")]

    @property
    def path(self) -> str:
        return str(self.db_path)
