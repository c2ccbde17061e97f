"""
Entity Aggregator - Fold readings into per-entity records
=========================================================

Consumes one cycle's flat reading list and rebuilds the access point and
client records it describes. Readings arrive in any order; each one fills a
single field of a single record.

Per-reading Flow
----------------
    1. Catalog match. Unknown prefixes get a debug-level notice and are
       counted; they never create a record and are not warnings.
    2. Index resolution (``MalformedIndex`` on a bad suffix).
    3. Kind check. A key already bound to the other entity kind is
       rejected (``KIND_CONFLICT``).
    4. Decode (``TypeMismatch`` / ``MalformedValue``).
    5. Assign into the record, creating it on first use. Plain fields are
       last-write-wins in encounter order; accumulating fields append.

Any failure in 2-4 produces exactly one ``ReadingWarning`` and drops only that
reading. Nothing raised by a single reading escapes ``consume()``.

Example
-------
    >>> aggregator = EntityAggregator(build_default_catalog())
    >>> aggregator.consume(readings)
    >>> classify_bands(aggregator.access_points.values())
    >>> writer.write(aggregator.access_points, aggregator.clients, snapshot_time)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from .catalog import MetricCatalog, MetricSpec
from .errors import DecodeError, ErrorCode
from .index import resolve_index
from .records import AccessPointRecord, ClientRecord, EntityKind, MetricReading

logger = logging.getLogger("Telemetry.Aggregator")

EntityRecord = Union[AccessPointRecord, ClientRecord]


@dataclass(frozen=True)
class ReadingWarning:
    """Structured record of one dropped reading."""
    identifier: str
    declared_type: str
    error_code: ErrorCode
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "identifier": self.identifier,
            "declared_type": self.declared_type,
            "error": self.error_code.code,
            "message": self.message,
        }


@dataclass
class AggregationStats:
    readings_seen: int = 0
    readings_applied: int = 0
    unknown_metrics: int = 0
    warnings: int = 0


class EntityAggregator:
    """
    Cycle-scoped accumulator for access point and client records.

    Create one per cycle and discard it after the snapshot is written.
    """

    def __init__(self, catalog: MetricCatalog):
        self.catalog = catalog
        self.access_points: Dict[str, AccessPointRecord] = {}
        self.clients: Dict[str, ClientRecord] = {}
        self.warnings: List[ReadingWarning] = []
        self.stats = AggregationStats()
        self._kinds: Dict[str, EntityKind] = {}

    def consume(self, readings: Iterable[MetricReading]) -> "EntityAggregator":
        """Apply every reading in order; returns self for chaining."""
        for reading in readings:
            self.apply(reading)
        return self

    def apply(self, reading: MetricReading) -> bool:
        """
        Apply a single reading.

        Returns:
            True if a record field was updated, False if the reading was
            unknown or dropped.
        """
        self.stats.readings_seen += 1

        match = self.catalog.match(reading.identifier)
        if match is None:
            self.stats.unknown_metrics += 1
            logger.debug(f"Unknown metric ignored: identifier={reading.identifier}")
            return False

        spec = match.spec
        try:
            key = resolve_index(spec.encoding, match.suffix, spec.key_width)
            bound = self._kinds.get(key)
            if bound is not None and bound is not spec.kind:
                self._warn(
                    reading,
                    ErrorCode.KIND_CONFLICT,
                    f"key {key} is a {bound.value}, {spec.name} addresses a {spec.kind.value}",
                )
                return False
            value = spec.decode(reading.declared_type, reading.raw_value)
        except DecodeError as e:
            self._warn(reading, e.error_code, e.message)
            return False

        record = self._record_for(spec.kind, key)
        self._assign(record, spec, value)
        self.stats.readings_applied += 1
        return True

    def _record_for(self, kind: EntityKind, key: str) -> EntityRecord:
        self._kinds[key] = kind
        if kind is EntityKind.ACCESS_POINT:
            record: Optional[EntityRecord] = self.access_points.get(key)
            if record is None:
                record = self.access_points[key] = AccessPointRecord(key=key)
        else:
            record = self.clients.get(key)
            if record is None:
                record = self.clients[key] = ClientRecord(key=key)
        return record

    @staticmethod
    def _assign(record: EntityRecord, spec: MetricSpec, value) -> None:
        if spec.accumulate:
            getattr(record, spec.field).append(value)
        else:
            setattr(record, spec.field, value)

    def _warn(self, reading: MetricReading, code: ErrorCode, message: str) -> None:
        warning = ReadingWarning(
            identifier=reading.identifier,
            declared_type=reading.declared_type.value,
            error_code=code,
            message=message,
        )
        self.warnings.append(warning)
        self.stats.warnings += 1
        logger.warning(
            f"Bad/unexpected SNMP data dropped: identifier={warning.identifier}, "
            f"type={warning.declared_type}, error={code.code}: {message}",
            extra={"reading": warning.to_dict()},
        )
