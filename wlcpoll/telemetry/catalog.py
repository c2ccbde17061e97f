"""
Metric Catalog - OID prefix table for the controller MIB
========================================================

Static table describing every metric the poller understands: which entity
kind it belongs to, the record field it fills, the SNMP types it accepts,
how its index is laid out and how its value is decoded.

Matching
--------
    Identifiers are matched by longest prefix on arc boundaries, so
    ``...2.1.4.1.25.<mac>`` resolves to the protocol column and never to
    the ``...2.1.4.1.2`` IP address column that shares its leading text.

    The catalog is built once and is read-only afterwards. Duplicate
    prefixes are rejected at construction.

Decoding
--------
    ``MetricSpec.decode(declared_type, raw_value)`` checks the declared type
    against the accepted set (``TypeMismatch`` otherwise) and runs the
    field decoder (``MalformedValue`` if the value cannot be converted).
    Decoders are pure functions of the raw value.

Default Catalog
---------------
    Cisco/Airespace bsn MIB (enterprise 14179): bsnAPTable and bsnAPIfTable
    for access points, bsnMobileStationTable and bsnMobileStationStatsTable
    for clients. See ``DEFAULT_METRICS``.
"""

import ipaddress
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import MalformedValue, TypeMismatch
from .index import IndexEncoding, split_arcs
from .records import ClientProtocol, EntityKind, ValueType

MAC_LENGTH = 6
AP_NAME_MAX_BYTES = 32

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_MIN = -(2 ** 63)
SQLITE_INT_MAX = 2 ** 63 - 1

STRING_TYPES = frozenset({ValueType.OCTET_STRING})
INTEGER_TYPES = frozenset({ValueType.INTEGER})
ADDRESS_TYPES = frozenset({ValueType.OCTET_STRING, ValueType.IP_ADDRESS})
COUNTER_TYPES = frozenset({ValueType.COUNTER32, ValueType.COUNTER64, ValueType.INTEGER})


def _as_bytes(raw: Any) -> bytes:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, str):
        return raw.encode("utf-8")
    raise MalformedValue(f"expected octets, got {type(raw).__name__}")


def decode_mac(raw: Any) -> str:
    octets = _as_bytes(raw)
    if len(octets) != MAC_LENGTH:
        raise MalformedValue(f"MAC address has {len(octets)} bytes, expected {MAC_LENGTH}")
    return octets.hex()


def decode_display_string(raw: Any) -> str:
    return _as_bytes(raw).decode("utf-8", errors="replace")


def decode_ap_name(raw: Any) -> str:
    # bsnAPName is SIZE(0..32); clip anything longer at a character boundary
    octets = _as_bytes(raw)[:AP_NAME_MAX_BYTES]
    return octets.decode("utf-8", errors="ignore")


def decode_ipv4(raw: Any) -> str:
    octets = _as_bytes(raw)
    try:
        return str(ipaddress.IPv4Address(octets))
    except ipaddress.AddressValueError as e:
        raise MalformedValue(f"IP address has {len(octets)} bytes, expected 4") from e


def decode_integer(raw: Any) -> int:
    if isinstance(raw, bool):
        raise MalformedValue("boolean is not an SNMP integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise MalformedValue(f"not an integer: {raw!r}") from e
    if not SQLITE_INT_MIN <= value <= SQLITE_INT_MAX:
        raise MalformedValue(f"integer {value} does not fit a signed 64-bit column")
    return value


def decode_protocol(raw: Any) -> int:
    value = decode_integer(raw)
    try:
        return int(ClientProtocol(value))
    except ValueError as e:
        raise MalformedValue(f"unknown client protocol {value}") from e


@dataclass(frozen=True)
class MetricSpec:
    """One catalog row."""

    name: str
    prefix: str
    kind: EntityKind
    field: str
    accepts: FrozenSet[ValueType]
    decoder: Callable[[Any], Any]
    encoding: IndexEncoding
    key_width: Optional[int] = None
    accumulate: bool = False  # append to a list field instead of overwriting

    @property
    def arcs(self) -> Tuple[str, ...]:
        return tuple(split_arcs(self.prefix))

    def decode(self, declared_type: ValueType, raw_value: Any) -> Any:
        """
        Decode a raw value for this metric.

        Raises:
            TypeMismatch: If declared_type is not accepted
            MalformedValue: If the value cannot be converted
        """
        if declared_type not in self.accepts:
            raise TypeMismatch(
                f"{self.name} accepts {', '.join(sorted(t.value for t in self.accepts))}, "
                f"got {declared_type.value}",
                details={"metric": self.name, "declared_type": declared_type.value},
            )
        return self.decoder(raw_value)


@dataclass(frozen=True)
class CatalogMatch:
    spec: MetricSpec
    suffix: Tuple[str, ...]


class MetricCatalog:
    """
    Immutable prefix table with longest-prefix matching.

    Example:
        >>> catalog = MetricCatalog(DEFAULT_METRICS)
        >>> match = catalog.match(".1.3.6.1.4.1.14179.2.1.6.1.1.0.17.34.51.68.85")
        >>> match.spec.field, match.suffix
        ('rssi', ('0', '17', '34', '51', '68', '85'))
    """

    def __init__(self, specs: Iterable[MetricSpec]):
        table: Dict[Tuple[str, ...], MetricSpec] = {}
        for spec in specs:
            arcs = spec.arcs
            if not arcs:
                raise ValueError(f"Metric {spec.name} has an empty prefix")
            if arcs in table:
                raise ValueError(
                    f"Duplicate metric prefix {spec.prefix} "
                    f"({table[arcs].name} and {spec.name})"
                )
            table[arcs] = spec

        self._table: Mapping[Tuple[str, ...], MetricSpec] = MappingProxyType(table)
        self._lengths = sorted({len(arcs) for arcs in table}, reverse=True)

    def match(self, identifier: str) -> Optional[CatalogMatch]:
        """Find the longest known prefix of identifier, or None."""
        arcs = split_arcs(identifier)
        for length in self._lengths:
            if length > len(arcs):
                continue
            spec = self._table.get(tuple(arcs[:length]))
            if spec is not None:
                return CatalogMatch(spec=spec, suffix=tuple(arcs[length:]))
        return None

    @property
    def prefixes(self) -> List[str]:
        """Metric prefixes in catalog order, used as default walk groups."""
        return [spec.prefix for spec in self._table.values()]

    def __iter__(self) -> Iterator[MetricSpec]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)


_BSN = ".1.3.6.1.4.1.14179"

DEFAULT_METRICS: Tuple[MetricSpec, ...] = (
    # bsnAPTable, indexed by bsnAPDot3MacAddress
    MetricSpec("bsnAPDot3MacAddress", f"{_BSN}.2.2.1.1.1", EntityKind.ACCESS_POINT,
               "mac_address", STRING_TYPES, decode_mac,
               IndexEncoding.DECIMAL_DOTTED, key_width=MAC_LENGTH),
    MetricSpec("bsnAPName", f"{_BSN}.2.2.1.1.3", EntityKind.ACCESS_POINT,
               "name", STRING_TYPES, decode_ap_name,
               IndexEncoding.DECIMAL_DOTTED, key_width=MAC_LENGTH),
    # bsnAPIfTable, indexed by bsnAPDot3MacAddress + bsnAPIfSlotId
    MetricSpec("bsnAPIfPhyChannelNumber", f"{_BSN}.2.2.2.1.4", EntityKind.ACCESS_POINT,
               "pending_channels", INTEGER_TYPES, decode_integer,
               IndexEncoding.DECIMAL_DOTTED, key_width=MAC_LENGTH, accumulate=True),
    # bsnMobileStationTable, indexed by bsnMobileStationMacAddress
    MetricSpec("bsnMobileStationAPMacAddr", f"{_BSN}.2.1.4.1.4", EntityKind.CLIENT,
               "associated_ap_mac", STRING_TYPES, decode_mac,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationIpAddress", f"{_BSN}.2.1.4.1.2", EntityKind.CLIENT,
               "ip_address", ADDRESS_TYPES, decode_ipv4,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationMacAddress", f"{_BSN}.2.1.4.1.1", EntityKind.CLIENT,
               "mac_address", STRING_TYPES, decode_mac,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationSsid", f"{_BSN}.2.1.4.1.7", EntityKind.CLIENT,
               "ssid", STRING_TYPES, decode_display_string,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationUserName", f"{_BSN}.2.1.4.1.3", EntityKind.CLIENT,
               "username", STRING_TYPES, decode_display_string,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationProtocol", f"{_BSN}.2.1.4.1.25", EntityKind.CLIENT,
               "protocol", INTEGER_TYPES, decode_protocol,
               IndexEncoding.BINARY_SUFFIX),
    # bsnMobileStationStatsTable, same index
    MetricSpec("bsnMobileStationRSSI", f"{_BSN}.2.1.6.1.1", EntityKind.CLIENT,
               "rssi", INTEGER_TYPES, decode_integer,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationSnr", f"{_BSN}.2.1.6.1.26", EntityKind.CLIENT,
               "snr", INTEGER_TYPES, decode_integer,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationBytesReceived", f"{_BSN}.2.1.6.1.2", EntityKind.CLIENT,
               "bytes_received", COUNTER_TYPES, decode_integer,
               IndexEncoding.BINARY_SUFFIX),
    MetricSpec("bsnMobileStationBytesSent", f"{_BSN}.2.1.6.1.3", EntityKind.CLIENT,
               "bytes_sent", COUNTER_TYPES, decode_integer,
               IndexEncoding.BINARY_SUFFIX),
)


def build_default_catalog() -> MetricCatalog:
    return MetricCatalog(DEFAULT_METRICS)
