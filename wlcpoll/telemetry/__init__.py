"""
Telemetry Module for wlcpoll
============================

Rebuilds access point and client records from a controller's SNMP tables and
stores one timestamped snapshot per poll cycle.

Components
----------
    catalog:
        Static OID prefix table (entity kind, field, accepted types,
        index layout, decoder). Longest-prefix matching on arc boundaries.

    index:
        Index suffix -> EntityKey. Binary-suffix and decimal-dotted layouts,
        both normalized to lowercase hex.

    aggregator:
        Folds a reading batch into per-key records. Bad readings become
        warnings and never abort the batch.

    bands:
        Post-pass splitting raw AP channel numbers into 2.4/5 GHz fields.

    writer:
        Schema bootstrap and all-or-nothing snapshot inserts.

    cycle:
        One fetch -> aggregate -> classify -> write pass with timing.

    scheduler:
        Serialized fixed-interval driver for cycles.

Database Tables
---------------
Created by SnapshotWriter.ensure_schema():

    - access_points: One row per AP per snapshot
    - clients: One row per associated client per snapshot
"""

from .aggregator import AggregationStats, EntityAggregator, ReadingWarning
from .bands import BAND_SPLIT_CHANNEL, Band, classify_bands, classify_channel
from .catalog import DEFAULT_METRICS, MetricCatalog, MetricSpec, build_default_catalog
from .cycle import CycleReport, PollCycle
from .db import TelemetryDB
from .errors import (
    ConfigError,
    DecodeError,
    ErrorCode,
    MalformedIndex,
    MalformedValue,
    PersistenceError,
    TelemetryError,
    TransportError,
    TypeMismatch,
)
from .index import IndexEncoding, resolve_index
from .records import (
    AccessPointRecord,
    ClientProtocol,
    ClientRecord,
    EntityKind,
    MetricReading,
    ValueType,
)
from .scheduler import PollScheduler, SchedulerState
from .writer import Snapshot, SnapshotWriter, WriteResult

__all__ = [
    # Records
    "AccessPointRecord",
    "ClientProtocol",
    "ClientRecord",
    "EntityKind",
    "MetricReading",
    "ValueType",
    # Catalog / index
    "DEFAULT_METRICS",
    "IndexEncoding",
    "MetricCatalog",
    "MetricSpec",
    "build_default_catalog",
    "resolve_index",
    # Reconstruction
    "AggregationStats",
    "EntityAggregator",
    "ReadingWarning",
    "BAND_SPLIT_CHANNEL",
    "Band",
    "classify_bands",
    "classify_channel",
    # Persistence
    "Snapshot",
    "SnapshotWriter",
    "TelemetryDB",
    "WriteResult",
    # Scheduling
    "CycleReport",
    "PollCycle",
    "PollScheduler",
    "SchedulerState",
    # Errors
    "ConfigError",
    "DecodeError",
    "ErrorCode",
    "MalformedIndex",
    "MalformedValue",
    "PersistenceError",
    "TelemetryError",
    "TransportError",
    "TypeMismatch",
]
