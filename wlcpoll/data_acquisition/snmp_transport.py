import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    bulk_walk_cmd,
    get_cmd,
)

from ..telemetry.errors import TransportError
from ..telemetry.records import MetricReading, ValueType

logger = logging.getLogger("SnmpTransport")

# sysObjectID.0, answered by every agent
PROBE_OID = "1.3.6.1.2.1.1.2.0"

# pysnmp class name -> declared type, checked along the value's MRO
_TYPE_NAMES = {
    "IpAddress": ValueType.IP_ADDRESS,
    "Counter32": ValueType.COUNTER32,
    "Counter64": ValueType.COUNTER64,
    "Gauge32": ValueType.GAUGE32,
    "Unsigned32": ValueType.GAUGE32,
    "TimeTicks": ValueType.TIMETICKS,
    "Integer32": ValueType.INTEGER,
    "Integer": ValueType.INTEGER,
    "OctetString": ValueType.OCTET_STRING,
    "ObjectIdentifier": ValueType.OBJECT_IDENTIFIER,
    "NoSuchObject": ValueType.NO_SUCH_OBJECT,
    "NoSuchInstance": ValueType.NO_SUCH_INSTANCE,
    "EndOfMibView": ValueType.END_OF_MIB_VIEW,
    "Null": ValueType.NULL,
}

_NUMERIC = {
    ValueType.INTEGER, ValueType.COUNTER32, ValueType.COUNTER64,
    ValueType.GAUGE32, ValueType.TIMETICKS,
}


def declared_type_of(value: Any) -> ValueType:
    for cls in type(value).__mro__:
        declared = _TYPE_NAMES.get(cls.__name__)
        if declared is not None:
            return declared
    return ValueType.NULL


def to_reading(name: Any, value: Any) -> MetricReading:
    """Convert one pysnmp var-bind into a MetricReading."""
    as_tuple = getattr(name, "asTuple", None)
    identifier = "." + ".".join(str(arc) for arc in as_tuple()) if as_tuple else str(name)

    declared = declared_type_of(value)
    if declared in (ValueType.OCTET_STRING, ValueType.IP_ADDRESS):
        raw = bytes(value.asOctets())
    elif declared in _NUMERIC:
        raw = int(value)
    elif declared is ValueType.OBJECT_IDENTIFIER:
        raw = str(value)
    else:
        raw = None
    return MetricReading(identifier=identifier, declared_type=declared, raw_value=raw)


class MetricTransport(ABC):
    """Source of metric readings, one group (OID subtree) at a time."""

    def open(self) -> None:
        pass

    def close(self) -> bool:
        return True

    @abstractmethod
    def fetch_group(self, group: str) -> List[MetricReading]:
        """
        Fetch every reading under one group identifier.

        Raises:
            TransportError: If the group could not be fetched
        """
        raise NotImplementedError


class SnmpTransport(MetricTransport):
    """
    SNMP v2c bulk walker for one controller.

    pysnmp's high-level API is asyncio based; the transport owns a private
    event loop and runs each walk to completion on it, so callers see a
    plain blocking ``fetch_group``. Only one walk may run at a time, which
    the serialized scheduler guarantees.
    """

    def __init__(
        self,
        host: str,
        community: str = "public",
        port: int = 161,
        timeout: float = 2.0,
        retries: int = 1,
        max_repetitions: int = 25,
    ):
        self.host = host
        self.community = community
        self.port = port
        self.timeout = timeout
        self.retries = retries
        self.max_repetitions = max_repetitions

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._engine: Optional[SnmpEngine] = None
        self._target: Optional[UdpTransportTarget] = None
        self._auth = CommunityData(community, mpModel=1)  # v2c

    def open(self) -> None:
        """
        Create the SNMP engine and probe the agent.

        Raises:
            TransportError: If the agent does not answer (fatal at startup)
        """
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        try:
            self._loop.run_until_complete(self._open())
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(
                f"cannot open SNMP session to {self.host}:{self.port}: {e}",
                details={"host": self.host, "port": self.port},
            ) from e
        logger.info(
            f"SNMP session open: host={self.host}, port={self.port}, "
            f"timeout={self.timeout}s, retries={self.retries}"
        )

    async def _open(self) -> None:
        self._engine = SnmpEngine()
        self._target = await UdpTransportTarget.create(
            (self.host, self.port), timeout=self.timeout, retries=self.retries
        )
        error_indication, error_status, error_index, _ = await get_cmd(
            self._engine,
            self._auth,
            self._target,
            ContextData(),
            ObjectType(ObjectIdentity(PROBE_OID)),
        )
        if error_indication:
            raise TransportError(
                f"agent {self.host} did not answer probe: {error_indication}",
                details={"host": self.host},
            )
        if error_status:
            raise TransportError(
                f"agent {self.host} rejected probe: {error_status.prettyPrint()} at {error_index}",
                details={"host": self.host},
            )

    def close(self) -> bool:
        """
        Release the engine and the event loop.

        Returns:
            False if a walk is still running on the loop; nothing is
            released then and close() can be called again later.
        """
        if self._loop is not None and self._loop.is_running():
            logger.warning(f"SNMP session still busy, not closing: host={self.host}")
            return False
        if self._engine is not None:
            self._engine.close_dispatcher()
            self._engine = None
        if self._loop is not None:
            self._loop.close()
            self._loop = None
        logger.info(f"SNMP session closed: host={self.host}")
        return True

    def fetch_group(self, group: str) -> List[MetricReading]:
        if self._loop is None or self._engine is None:
            raise TransportError("transport is not open", details={"group": group})

        started = time.monotonic()
        try:
            readings = self._loop.run_until_complete(self._walk(group))
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"walk of {group} failed: {e}", details={"group": group}) from e

        logger.debug(
            f"Walked {group}: readings={len(readings)}, "
            f"duration={time.monotonic() - started:.3f}s"
        )
        return readings

    async def _walk(self, group: str) -> List[MetricReading]:
        readings: List[MetricReading] = []
        async for error_indication, error_status, error_index, var_binds in bulk_walk_cmd(
            self._engine,
            self._auth,
            self._target,
            ContextData(),
            0,
            self.max_repetitions,
            ObjectType(ObjectIdentity(group.lstrip("."))),
            lexicographicMode=False,
            lookupMib=False,
        ):
            if error_indication:
                raise TransportError(
                    f"walk of {group} failed: {error_indication}",
                    details={"group": group, "partial": len(readings)},
                )
            if error_status:
                raise TransportError(
                    f"walk of {group} failed: {error_status.prettyPrint()} at {error_index}",
                    details={"group": group, "partial": len(readings)},
                )
            for var_bind in var_binds:
                readings.append(to_reading(var_bind[0], var_bind[1]))
        return readings
