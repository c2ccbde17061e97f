"""Shared pytest fixtures for the poller tests.

Provides temporary SQLite stores, the default metric catalog, reading
builders and a scripted in-memory transport so test modules can focus on
behaviour rather than boilerplate.
"""

from typing import List, Sequence

import pytest

from wlcpoll.data_acquisition import MetricTransport
from wlcpoll.telemetry import (
    MetricReading,
    SnapshotWriter,
    TelemetryDB,
    TransportError,
    ValueType,
    build_default_catalog,
)

BSN = ".1.3.6.1.4.1.14179"
AP_MAC_PREFIX = f"{BSN}.2.2.1.1.1"
AP_NAME_PREFIX = f"{BSN}.2.2.1.1.3"
AP_CHANNEL_PREFIX = f"{BSN}.2.2.2.1.4"
CLIENT_AP_MAC_PREFIX = f"{BSN}.2.1.4.1.4"
CLIENT_IP_PREFIX = f"{BSN}.2.1.4.1.2"
CLIENT_MAC_PREFIX = f"{BSN}.2.1.4.1.1"
CLIENT_SSID_PREFIX = f"{BSN}.2.1.4.1.7"
CLIENT_USER_PREFIX = f"{BSN}.2.1.4.1.3"
CLIENT_PROTOCOL_PREFIX = f"{BSN}.2.1.4.1.25"
CLIENT_RSSI_PREFIX = f"{BSN}.2.1.6.1.1"
CLIENT_SNR_PREFIX = f"{BSN}.2.1.6.1.26"
CLIENT_RX_PREFIX = f"{BSN}.2.1.6.1.2"
CLIENT_TX_PREFIX = f"{BSN}.2.1.6.1.3"

AP_MAC = bytes.fromhex("001122334455")
CLIENT_MAC = bytes.fromhex("a0b1c2d3e4f5")


# ---------------------------------------------------------------------------
# Reading builders
# ---------------------------------------------------------------------------

def mac_index(mac: bytes) -> str:
    """Six one-byte arcs, the layout both index encodings use for a MAC."""
    return ".".join(str(b) for b in mac)


def reading(prefix: str, index: str, declared_type: ValueType, value) -> MetricReading:
    return MetricReading(
        identifier=f"{prefix}.{index}",
        declared_type=declared_type,
        raw_value=value,
    )


def octets(prefix: str, index: str, value) -> MetricReading:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return reading(prefix, index, ValueType.OCTET_STRING, value)


def integer(prefix: str, index: str, value: int) -> MetricReading:
    return reading(prefix, index, ValueType.INTEGER, value)


def ap_readings(mac: bytes = AP_MAC, name: str = "ap-lobby",
                channels: Sequence[int] = (6, 36)) -> List[MetricReading]:
    index = mac_index(mac)
    batch = [
        octets(AP_MAC_PREFIX, index, mac),
        octets(AP_NAME_PREFIX, index, name),
    ]
    for slot, channel in enumerate(channels):
        batch.append(integer(AP_CHANNEL_PREFIX, f"{index}.{slot}", channel))
    return batch


def client_readings(mac: bytes = CLIENT_MAC, ap_mac: bytes = AP_MAC) -> List[MetricReading]:
    index = mac_index(mac)
    return [
        octets(CLIENT_MAC_PREFIX, index, mac),
        octets(CLIENT_AP_MAC_PREFIX, index, ap_mac),
        reading(CLIENT_IP_PREFIX, index, ValueType.IP_ADDRESS, bytes([10, 0, 0, 42])),
        octets(CLIENT_SSID_PREFIX, index, "corp"),
        octets(CLIENT_USER_PREFIX, index, "alice"),
        integer(CLIENT_PROTOCOL_PREFIX, index, 7),
        integer(CLIENT_RSSI_PREFIX, index, -61),
        integer(CLIENT_SNR_PREFIX, index, 34),
        reading(CLIENT_RX_PREFIX, index, ValueType.COUNTER64, 123456),
        reading(CLIENT_TX_PREFIX, index, ValueType.COUNTER64, 654321),
    ]


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeTransport(MetricTransport):
    """Serves canned readings, grouped by catalog prefix."""

    def __init__(self, readings: Sequence[MetricReading] = (), failing: Sequence[str] = ()):
        self.readings = list(readings)
        self.failing = set(failing)
        self.fetched: List[str] = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> bool:
        self.closed = True
        return True

    def fetch_group(self, group: str) -> List[MetricReading]:
        self.fetched.append(group)
        if group in self.failing:
            raise TransportError(f"timeout walking {group}", details={"group": group})
        return [r for r in self.readings if r.identifier.startswith(group + ".")]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def catalog():
    return build_default_catalog()


@pytest.fixture()
def db(tmp_path):
    return TelemetryDB(tmp_path / "wlc.db")


@pytest.fixture()
def writer(db):
    w = SnapshotWriter(db)
    w.ensure_schema()
    return w


@pytest.fixture()
def make_transport():
    def _make(readings: Sequence[MetricReading] = (), failing: Sequence[str] = ()) -> FakeTransport:
        return FakeTransport(readings, failing)
    return _make
