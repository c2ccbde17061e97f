"""Metric transports for the poller."""

from .snmp_transport import MetricTransport, SnmpTransport

__all__ = ["MetricTransport", "SnmpTransport"]
