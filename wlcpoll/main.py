import argparse
import logging
import signal
import sys

from wlcpoll.config import Settings, load_config
from wlcpoll.data_acquisition import SnmpTransport
from wlcpoll.telemetry import (
    PersistenceError,
    PollCycle,
    PollScheduler,
    SnapshotWriter,
    TelemetryDB,
    TelemetryError,
    build_default_catalog,
)
from wlcpoll.telemetry.db import TelemetryDBError

logger = logging.getLogger("PollerDaemon")


class PollerDaemon:

    def __init__(self, settings: Settings, transport=None):

        self.settings = settings
        self.transport = transport
        self.catalog = build_default_catalog()
        self.db = None
        self.writer = None
        self.cycle = None
        self.scheduler = None

        log_level = settings.logging.level
        logging.basicConfig(
            level=getattr(logging, log_level),
            format=settings.logging.format,
        )

    def initialize(self):
        """
        Bootstrap storage and open the transport.

        Raises:
            TelemetryError: Schema bootstrap or transport probe failed
        """
        snmp = self.settings.snmp
        logger.info(f"Initializing poller: host={snmp.host}, db={self.settings.storage.db_path}")

        try:
            self.db = TelemetryDB(self.settings.storage.db_path)
        except TelemetryDBError as e:
            raise PersistenceError(f"cannot open database: {e}") from e
        self.writer = SnapshotWriter(self.db)
        self.writer.ensure_schema()

        if self.transport is None:
            self.transport = SnmpTransport(
                host=snmp.host,
                community=snmp.community,
                port=snmp.port,
                timeout=snmp.timeout,
                retries=snmp.retries,
                max_repetitions=snmp.max_repetitions,
            )
        self.transport.open()

        groups = list(self.settings.poll.groups) or self.catalog.prefixes
        self.cycle = PollCycle(self.transport, self.catalog, self.writer, groups=groups)
        self.scheduler = PollScheduler(self.cycle, interval_seconds=self.settings.poll.interval_seconds)
        logger.info(f"Poller ready: groups={len(groups)}, metrics={len(self.catalog)}")

    def get_stats(self) -> dict:
        stats = {}

        if self.scheduler:
            stats = self.scheduler.get_stats()
        if self.writer:
            try:
                stats["rows"] = self.writer.count_rows()
            except TelemetryDBError as e:
                logger.warning(f"Failed to count rows: {e}")
                stats["rows"] = None

        return stats

    def run_once(self) -> dict:
        """Run a single cycle and return a summary of what was stored."""
        report = self.scheduler.run_once()
        snapshot = self.writer.read_snapshot(report.snapshot_time)
        return {
            "iteration": report.iteration,
            "snapshot_time": report.snapshot_time,
            "readings": report.readings_total,
            "failed_groups": report.failed_groups,
            "warnings": report.warnings,
            "access_points": len(snapshot.access_points),
            "clients": len(snapshot.clients),
            "duration": round(report.duration, 3),
        }

    def shutdown(self):
        idle = self.scheduler.stop() if self.scheduler else True
        if self.transport:
            if idle:
                self.transport.close()
            else:
                logger.warning("Cycle still running at shutdown, leaving transport open")
        logger.info(f"Poller stopped: {self.get_stats()}")

    def run(self):

        logger.info("Poller daemon started")

        self.initialize()

        def _on_signal(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.scheduler.stop()

        signal.signal(signal.SIGTERM, _on_signal)

        self.scheduler.start()
        try:
            while self.scheduler.is_running:
                self.scheduler.wait(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            self.shutdown()


def _apply_cli_overrides(config: dict, args: argparse.Namespace) -> dict:
    overrides = {
        ("snmp", "host"): args.host,
        ("snmp", "community"): args.community,
        ("snmp", "timeout"): args.timeout,
        ("storage", "db_path"): args.db,
        ("poll", "interval_seconds"): args.interval,
        ("logging", "level"): args.log_level,
    }
    for (section, name), value in overrides.items():
        if value is not None:
            config.setdefault(section, {})[name] = value
    return config


def main():

    parser = argparse.ArgumentParser(description="Wireless LAN controller SNMP poller")
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument("--host", help="Controller address")
    parser.add_argument("--community", help="SNMP v2c community")
    parser.add_argument("--timeout", type=float, help="SNMP timeout in seconds")
    parser.add_argument("--db", help="SQLite database path")
    parser.add_argument("--interval", type=float, help="Poll interval in seconds")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")

    args = parser.parse_args()

    try:
        config = _apply_cli_overrides(load_config(args.config), args)
        settings = Settings.from_dict(config)
    except TelemetryError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    daemon = PollerDaemon(settings)

    try:
        if args.once:
            daemon.initialize()
            try:
                summary = daemon.run_once()
            finally:
                daemon.shutdown()
            print(" ".join(f"{k}={v}" for k, v in summary.items()))
        else:
            daemon.run()
    except KeyboardInterrupt:
        logger.info("Poller stopped")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
