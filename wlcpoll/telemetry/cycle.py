"""
Poll Cycle - one fetch, reconstruct and write pass
==================================================

Runs the whole pipeline for a single scheduler tick:

    1. Fetch every configured group from the transport. A failing group is
       logged and simply missing from the batch.
    2. Fold the batch into records (EntityAggregator).
    3. Split AP channel readings by band (classify_bands).
    4. Write the snapshot in one transaction (SnapshotWriter).

The cycle owns all of its state; nothing survives into the next cycle except
the rows committed to the store. ``PersistenceError`` propagates to the
scheduler, every other problem is absorbed and reported in the CycleReport.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from .aggregator import EntityAggregator
from .bands import classify_bands
from .catalog import MetricCatalog
from .errors import TransportError
from .records import MetricReading
from .writer import SnapshotWriter, WriteResult

if TYPE_CHECKING:
    from ..data_acquisition.snmp_transport import MetricTransport

logger = logging.getLogger("Telemetry.Cycle")


@dataclass
class CycleReport:
    """Observability record for one cycle."""
    iteration: int
    snapshot_time: float = 0.0
    readings_per_group: Dict[str, int] = field(default_factory=dict)
    failed_groups: List[str] = field(default_factory=list)
    readings_total: int = 0
    warnings: int = 0
    unknown_metrics: int = 0
    access_points: int = 0
    clients: int = 0
    rows_written: int = 0
    fetch_duration: float = 0.0
    reconstruct_duration: float = 0.0
    write_duration: float = 0.0
    error: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.fetch_duration + self.reconstruct_duration + self.write_duration


class PollCycle:
    """
    Pipeline for one poll cycle.

    Example:
        >>> cycle = PollCycle(transport, catalog, writer, groups=catalog.prefixes)
        >>> report = cycle.run(iteration=1)
        >>> report.rows_written
        42
    """

    def __init__(
        self,
        transport: "MetricTransport",
        catalog: MetricCatalog,
        writer: SnapshotWriter,
        groups: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.catalog = catalog
        self.writer = writer
        self.groups = list(groups) if groups else catalog.prefixes
        self.clock = clock
        self.timer = timer

    def fetch(self, report: CycleReport) -> List[MetricReading]:
        batch: List[MetricReading] = []
        for group in self.groups:
            started = self.timer()
            try:
                readings = self.transport.fetch_group(group)
            except TransportError as e:
                report.failed_groups.append(group)
                logger.error(
                    f"Walking SNMP did not come back cleanly: iteration={report.iteration}, "
                    f"group={group}, duration={self.timer() - started:.3f}s, err={e}"
                )
                continue
            report.readings_per_group[group] = len(readings)
            logger.debug(
                f"Fetched group: iteration={report.iteration}, group={group}, "
                f"readings={len(readings)}"
            )
            batch.extend(readings)
        return batch

    def run(self, iteration: int) -> CycleReport:
        """
        Execute one cycle.

        Raises:
            PersistenceError: If the snapshot transaction failed
        """
        report = CycleReport(iteration=iteration)

        started = self.timer()
        batch = self.fetch(report)
        report.fetch_duration = self.timer() - started
        report.readings_total = len(batch)
        logger.info(
            f"SNMP collection completed: iteration={iteration}, readings={len(batch)}, "
            f"failed_groups={len(report.failed_groups)}, duration={report.fetch_duration:.3f}s"
        )

        started = self.timer()
        aggregator = EntityAggregator(self.catalog).consume(batch)
        classify_bands(aggregator.access_points.values())
        report.warnings = aggregator.stats.warnings
        report.unknown_metrics = aggregator.stats.unknown_metrics
        report.access_points = len(aggregator.access_points)
        report.clients = len(aggregator.clients)
        report.reconstruct_duration = self.timer() - started

        report.snapshot_time = self.clock()
        started = self.timer()
        result: WriteResult = self.writer.write(
            aggregator.access_points, aggregator.clients, report.snapshot_time
        )
        report.write_duration = self.timer() - started
        report.rows_written = result.total

        logger.info(
            f"Database inserts completed: iteration={iteration}, rows={result.total} "
            f"(access_points={result.access_points}, clients={result.clients}), "
            f"warnings={report.warnings}, reconstruct_duration={report.reconstruct_duration:.3f}s, "
            f"write_duration={report.write_duration:.3f}s, "
            f"total_duration={report.duration:.3f}s"
        )
        return report
