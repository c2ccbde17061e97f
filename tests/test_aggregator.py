from wlcpoll.telemetry import EntityAggregator, ErrorCode, MetricReading, ValueType

from conftest import (
    AP_MAC,
    AP_NAME_PREFIX,
    CLIENT_MAC,
    CLIENT_MAC_PREFIX,
    CLIENT_RSSI_PREFIX,
    CLIENT_SSID_PREFIX,
    ap_readings,
    client_readings,
    integer,
    mac_index,
    octets,
)


def test_rebuilds_ap_and_client_records(catalog):
    aggregator = EntityAggregator(catalog).consume(ap_readings() + client_readings())

    ap = aggregator.access_points[AP_MAC.hex()]
    assert ap.mac_address == "001122334455"
    assert ap.name == "ap-lobby"
    assert ap.pending_channels == [6, 36]

    client = aggregator.clients[CLIENT_MAC.hex()]
    assert client.mac_address == CLIENT_MAC.hex()
    assert client.associated_ap_mac == AP_MAC.hex()
    assert client.ip_address == "10.0.0.42"
    assert client.ssid == "corp"
    assert client.username == "alice"
    assert client.protocol == 7
    assert client.rssi == -61
    assert client.snr == 34
    assert client.bytes_received == 123456
    assert client.bytes_sent == 654321
    assert aggregator.warnings == []


def test_order_does_not_matter(catalog):
    batch = ap_readings() + client_readings()
    forward = EntityAggregator(catalog).consume(batch)
    backward = EntityAggregator(catalog).consume(reversed(batch))
    assert forward.clients == backward.clients
    assert forward.access_points.keys() == backward.access_points.keys()


def test_unknown_metric_is_ignored_without_warning(catalog):
    unknown = MetricReading(".1.3.6.1.2.1.1.5.0", ValueType.OCTET_STRING, b"wlc-01")
    aggregator = EntityAggregator(catalog)

    assert aggregator.apply(unknown) is False
    assert aggregator.warnings == []
    assert aggregator.access_points == {}
    assert aggregator.clients == {}
    assert aggregator.stats.unknown_metrics == 1


def test_type_mismatch_drops_reading_with_one_warning(catalog):
    index = mac_index(CLIENT_MAC)
    batch = [
        octets(CLIENT_SSID_PREFIX, index, "corp"),
        octets(CLIENT_RSSI_PREFIX, index, "-60"),
    ]
    aggregator = EntityAggregator(catalog).consume(batch)

    assert len(aggregator.warnings) == 1
    warning = aggregator.warnings[0]
    assert warning.error_code is ErrorCode.TYPE_MISMATCH
    assert warning.identifier == f"{CLIENT_RSSI_PREFIX}.{index}"
    assert warning.declared_type == "octet-string"
    assert aggregator.clients[CLIENT_MAC.hex()].rssi == 0
    assert aggregator.clients[CLIENT_MAC.hex()].ssid == "corp"


def test_malformed_index_is_a_warning(catalog):
    aggregator = EntityAggregator(catalog)
    assert aggregator.apply(octets(AP_NAME_PREFIX, "0.17.34", "short")) is False
    assert [w.error_code for w in aggregator.warnings] == [ErrorCode.MALFORMED_INDEX]
    assert aggregator.access_points == {}


def test_malformed_value_is_a_warning(catalog):
    index = mac_index(CLIENT_MAC)
    batch = [
        octets(CLIENT_SSID_PREFIX, index, "corp"),
        octets(CLIENT_MAC_PREFIX, index, b"\x01\x02"),
    ]
    aggregator = EntityAggregator(catalog).consume(batch)
    assert [w.error_code for w in aggregator.warnings] == [ErrorCode.MALFORMED_VALUE]
    assert aggregator.clients[CLIENT_MAC.hex()].mac_address == ""


def test_key_bound_to_one_kind(catalog):
    shared = mac_index(AP_MAC)
    batch = [
        octets(AP_NAME_PREFIX, shared, "ap-lobby"),
        integer(CLIENT_RSSI_PREFIX, shared, -50),
    ]
    aggregator = EntityAggregator(catalog).consume(batch)

    assert list(aggregator.access_points) == [AP_MAC.hex()]
    assert aggregator.clients == {}
    assert [w.error_code for w in aggregator.warnings] == [ErrorCode.KIND_CONFLICT]


def test_last_write_wins(catalog):
    index = mac_index(CLIENT_MAC)
    batch = [
        integer(CLIENT_RSSI_PREFIX, index, -80),
        integer(CLIENT_RSSI_PREFIX, index, -55),
    ]
    aggregator = EntityAggregator(catalog).consume(batch)
    assert aggregator.clients[CLIENT_MAC.hex()].rssi == -55
    assert aggregator.warnings == []
