"""
Error Taxonomy for the Telemetry Pipeline
=========================================

Typed error codes and exceptions shared by the transport, the reconstruction
pass and the snapshot writer.

Error Codes
-----------
    TRANSPORT_ERROR (group): one metric group could not be fetched
    MALFORMED_INDEX (reading): index suffix could not be decoded
    TYPE_MISMATCH (reading): declared type not accepted for the metric
    MALFORMED_VALUE (reading): value of an accepted type failed to decode
    KIND_CONFLICT (reading): key already bound to the other entity kind
    PERSISTENCE_ERROR (cycle): snapshot transaction failed and was rolled back
    CONFIG_ERROR (process): invalid configuration at startup

Scope tells the caller how far an error reaches. Reading-scoped errors are
absorbed by the aggregator and reported as warnings; a group-scoped error
drops that group's readings; a cycle-scoped error discards the cycle's
snapshot. Only process-scoped errors stop the daemon.

Usage
-----
    from wlcpoll.telemetry.errors import ErrorCode, TypeMismatch

    if declared_type not in accepted:
        raise TypeMismatch(
            f"expected one of {sorted(t.value for t in accepted)}",
            details={"declared_type": declared_type.value},
        )
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for the telemetry pipeline."""

    # Per-reading errors
    MALFORMED_INDEX = ("MALFORMED_INDEX", "reading", "Index suffix could not be decoded")
    TYPE_MISMATCH = ("TYPE_MISMATCH", "reading", "Declared type not accepted for metric")
    MALFORMED_VALUE = ("MALFORMED_VALUE", "reading", "Value could not be decoded")
    KIND_CONFLICT = ("KIND_CONFLICT", "reading", "Entity key already bound to another kind")

    # Wider errors
    TRANSPORT_ERROR = ("TRANSPORT_ERROR", "group", "Metric group fetch failed")
    PERSISTENCE_ERROR = ("PERSISTENCE_ERROR", "cycle", "Snapshot transaction failed")
    CONFIG_ERROR = ("CONFIG_ERROR", "process", "Invalid configuration")

    def __init__(self, code: str, scope: str, default_message: str):
        self.code = code
        self.scope = scope
        self.default_message = default_message


@dataclass
class TelemetryError(Exception):
    """Exception with error code for pipeline reporting."""

    error_code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"[{self.error_code.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured log record."""
        result = {
            "code": self.error_code.code,
            "scope": self.error_code.scope,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class DecodeError(TelemetryError):
    """Base for errors that drop a single reading."""


class MalformedIndex(DecodeError):
    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.MALFORMED_INDEX,
            message or ErrorCode.MALFORMED_INDEX.default_message,
            details,
        )


class TypeMismatch(DecodeError):
    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.TYPE_MISMATCH,
            message or ErrorCode.TYPE_MISMATCH.default_message,
            details,
        )


class MalformedValue(DecodeError):
    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.MALFORMED_VALUE,
            message or ErrorCode.MALFORMED_VALUE.default_message,
            details,
        )


class TransportError(TelemetryError):
    """A metric group fetch (or the startup probe) failed."""

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.TRANSPORT_ERROR,
            message or ErrorCode.TRANSPORT_ERROR.default_message,
            details,
        )


class PersistenceError(TelemetryError):
    """The snapshot transaction failed; nothing from the cycle was kept."""

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.PERSISTENCE_ERROR,
            message or ErrorCode.PERSISTENCE_ERROR.default_message,
            details,
        )


class ConfigError(TelemetryError):
    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.CONFIG_ERROR,
            message or ErrorCode.CONFIG_ERROR.default_message,
            details,
        )
