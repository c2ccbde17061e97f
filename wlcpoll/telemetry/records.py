"""
Telemetry records: raw readings from the transport and the per-cycle
entity accumulators they are folded into.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, List


class ValueType(Enum):
    """SNMP value encodings as declared by the agent."""

    OCTET_STRING = "octet-string"
    INTEGER = "integer"
    IP_ADDRESS = "ip-address"
    COUNTER32 = "counter32"
    COUNTER64 = "counter64"
    GAUGE32 = "gauge32"
    TIMETICKS = "timeticks"
    OBJECT_IDENTIFIER = "object-identifier"
    NULL = "null"
    NO_SUCH_OBJECT = "no-such-object"
    NO_SUCH_INSTANCE = "no-such-instance"
    END_OF_MIB_VIEW = "end-of-mib-view"


class EntityKind(Enum):
    ACCESS_POINT = "access_point"
    CLIENT = "client"


class ClientProtocol(IntEnum):
    """bsnMobileStationProtocol values."""

    DOT11A = 1
    DOT11B = 2
    DOT11G = 3
    UNKNOWN = 4
    MOBILE = 5
    DOT11N24 = 6
    DOT11N5 = 7


@dataclass(frozen=True)
class MetricReading:
    """One (identifier, declared type, value) triple from a walk."""
    identifier: str             # dotted OID, leading dot optional
    declared_type: ValueType
    raw_value: Any              # bytes for strings/addresses, int for numbers


@dataclass
class AccessPointRecord:
    key: str
    mac_address: str = ""
    name: str = ""
    channel_band24: int = 0
    channel_band5: int = 0
    pending_channels: List[int] = field(default_factory=list)  # one per radio slot


@dataclass
class ClientRecord:
    key: str
    associated_ap_mac: str = ""
    ip_address: str = ""
    mac_address: str = ""
    ssid: str = ""
    username: str = ""
    protocol: int = 0
    rssi: int = 0
    snr: int = 0
    bytes_received: int = 0
    bytes_sent: int = 0
