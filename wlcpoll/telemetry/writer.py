"""
Snapshot Writer - Atomic per-cycle persistence
==============================================

Writes one cycle's access point and client records as a single snapshot.
Every row of a snapshot carries the same ``snapshot_time``; rows are never
updated, each cycle appends a new snapshot.

Database Schema
---------------
    access_points:
        - id: Auto-increment identity
        - snapshot_time: Epoch seconds shared by the whole cycle
        - entity_key: Resolved index key (hex)
        - mac_address, name, channel_band24, channel_band5

    clients:
        - id, snapshot_time, entity_key
        - associated_ap_mac, ip_address, mac_address, ssid, username
        - protocol, rssi, snr, bytes_received, bytes_sent

Transaction Semantics
---------------------
    All inserts of a cycle run inside one ``TelemetryDB.connection()``
    block. The first failing insert stops the loop, the block rolls back
    and ``PersistenceError`` is raised. A cycle's data is all-or-nothing
    and is never retried.

Public API
----------
    ensure_schema()
        Idempotent table bootstrap, run once at startup.

    write(access_points, clients, snapshot_time) -> WriteResult
        Insert one snapshot.

    read_snapshot(snapshot_time) -> Snapshot
        Read a stored snapshot back.

    latest_snapshot_time() -> Optional[float]
"""

import logging
import sqlite3
from dataclasses import astuple, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .db import TelemetryDB, TelemetryDBError
from .errors import PersistenceError
from .records import AccessPointRecord, ClientRecord

logger = logging.getLogger("Telemetry.Writer")

AP_TABLE = "access_points"
CLIENT_TABLE = "clients"

AP_COLUMNS = ("entity_key", "mac_address", "name", "channel_band24", "channel_band5")
CLIENT_COLUMNS = (
    "entity_key", "associated_ap_mac", "ip_address", "mac_address", "ssid",
    "username", "protocol", "rssi", "snr", "bytes_received", "bytes_sent",
)

SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {AP_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        snapshot_time REAL NOT NULL,
        entity_key TEXT NOT NULL,
        mac_address TEXT,
        name TEXT,
        channel_band24 INTEGER DEFAULT 0,
        channel_band5 INTEGER DEFAULT 0
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_ap_snapshot ON {AP_TABLE}(snapshot_time)",
    f"""
    CREATE TABLE IF NOT EXISTS {CLIENT_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        snapshot_time REAL NOT NULL,
        entity_key TEXT NOT NULL,
        associated_ap_mac TEXT,
        ip_address TEXT,
        mac_address TEXT,
        ssid TEXT,
        username TEXT,
        protocol INTEGER DEFAULT 0,
        rssi INTEGER DEFAULT 0,
        snr INTEGER DEFAULT 0,
        bytes_received INTEGER DEFAULT 0,
        bytes_sent INTEGER DEFAULT 0
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_client_snapshot ON {CLIENT_TABLE}(snapshot_time)",
)


def _insert_sql(table: str, columns: Sequence[str]) -> str:
    names = ", ".join(("snapshot_time",) + tuple(columns))
    marks = ", ".join("?" for _ in range(len(columns) + 1))
    return f"INSERT INTO {table} ({names}) VALUES ({marks})"


AP_INSERT = _insert_sql(AP_TABLE, AP_COLUMNS)
CLIENT_INSERT = _insert_sql(CLIENT_TABLE, CLIENT_COLUMNS)


def ap_row(record: AccessPointRecord, snapshot_time: float) -> tuple:
    return (snapshot_time, record.key, record.mac_address, record.name,
            record.channel_band24, record.channel_band5)


def client_row(record: ClientRecord, snapshot_time: float) -> tuple:
    # ClientRecord field order matches CLIENT_COLUMNS (key -> entity_key)
    return (snapshot_time,) + astuple(record)


@dataclass(frozen=True)
class WriteResult:
    snapshot_time: float
    access_points: int
    clients: int

    @property
    def total(self) -> int:
        return self.access_points + self.clients


@dataclass
class Snapshot:
    snapshot_time: float
    access_points: List[Dict[str, Any]] = field(default_factory=list)
    clients: List[Dict[str, Any]] = field(default_factory=list)


class SnapshotWriter:
    """Persists cycle snapshots through a TelemetryDB."""

    def __init__(self, db: TelemetryDB):
        self.db = db

    def ensure_schema(self) -> None:
        """
        Create snapshot tables if they don't exist.

        Raises:
            PersistenceError: If the schema cannot be created (fatal at startup)
        """
        try:
            with self.db.connection() as conn:
                for statement in SCHEMA_STATEMENTS:
                    conn.execute(statement)
        except (sqlite3.Error, TelemetryDBError) as e:
            logger.error(f"Failed to initialize snapshot tables: {e}")
            raise PersistenceError(
                f"schema bootstrap failed: {e}",
                details={"db": self.db.path},
            ) from e

        logger.info(f"Snapshot tables initialized in {self.db.path}")

    def write(
        self,
        access_points: Mapping[str, AccessPointRecord],
        clients: Mapping[str, ClientRecord],
        snapshot_time: float,
    ) -> WriteResult:
        """
        Insert one snapshot in a single transaction.

        Args:
            access_points: key -> AccessPointRecord for the cycle
            clients: key -> ClientRecord for the cycle
            snapshot_time: Epoch seconds stamped on every row

        Returns:
            WriteResult with per-table row counts

        Raises:
            PersistenceError: On the first failing statement; nothing from
                this snapshot is kept.
        """
        current: Optional[str] = None
        try:
            with self.db.connection() as conn:
                for key, record in access_points.items():
                    current = f"{AP_TABLE}:{key}"
                    conn.execute(AP_INSERT, ap_row(record, snapshot_time))
                for key, record in clients.items():
                    current = f"{CLIENT_TABLE}:{key}"
                    conn.execute(CLIENT_INSERT, client_row(record, snapshot_time))
                current = "commit"
        except (sqlite3.Error, TelemetryDBError, OverflowError, ValueError) as e:
            logger.error(f"Snapshot insert failed at {current}, transaction rolled back: {e}")
            raise PersistenceError(
                f"snapshot write failed: {e}",
                details={"at": current, "snapshot_time": snapshot_time},
            ) from e

        result = WriteResult(
            snapshot_time=snapshot_time,
            access_points=len(access_points),
            clients=len(clients),
        )
        logger.debug(
            f"Snapshot written: ap_rows={result.access_points}, "
            f"client_rows={result.clients}, snapshot_time={snapshot_time:.3f}"
        )
        return result

    def read_snapshot(self, snapshot_time: float) -> Snapshot:
        """Read every row stored for one snapshot time."""
        snapshot = Snapshot(snapshot_time=snapshot_time)
        aps = self.db.execute_query(
            f"SELECT * FROM {AP_TABLE} WHERE snapshot_time = ? ORDER BY id",
            (snapshot_time,),
        )
        clients = self.db.execute_query(
            f"SELECT * FROM {CLIENT_TABLE} WHERE snapshot_time = ? ORDER BY id",
            (snapshot_time,),
        )
        snapshot.access_points = [dict(row) for row in aps]
        snapshot.clients = [dict(row) for row in clients]
        return snapshot

    def latest_snapshot_time(self) -> Optional[float]:
        row = self.db.execute_query(
            f"""
            SELECT MAX(t) FROM (
                SELECT MAX(snapshot_time) AS t FROM {AP_TABLE}
                UNION ALL
                SELECT MAX(snapshot_time) AS t FROM {CLIENT_TABLE}
            )
            """,
            fetch="one",
        )
        return row[0] if row is not None else None

    def count_rows(self) -> Dict[str, int]:
        counts = {}
        for table in (AP_TABLE, CLIENT_TABLE):
            row = self.db.execute_query(f"SELECT COUNT(*) FROM {table}", fetch="one")
            counts[table] = row[0]
        return counts
