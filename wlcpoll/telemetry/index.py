"""
Index Resolver - Entity keys from OID index suffixes
====================================================

Every table column the controller exposes is addressed as
``<column prefix>.<index>``. The index identifies the row (the entity) and
comes in two layouts depending on the table.

Index Encodings
---------------
    Binary suffix:
        The suffix after the column prefix is kept verbatim as key material.
        Arcs that fit a byte are packed one byte each, so a MAC embedded as
        six arcs becomes its six bytes. A suffix with any arc above 255 (an
        externally assigned session index) packs every arc as a 4-byte
        big-endian word.

    Decimal dotted:
        Each arc is one byte, 0-255, written in decimal. The bytes are
        concatenated and, for tables keyed by an AP's hardware address,
        truncated to the first ``width`` bytes. The trailing radio slot arc
        of bsnAPIfTable rows is dropped that way, so both radios of one AP
        resolve to the same key.

Keys are always lowercase hex of the decoded bytes, so the two encodings of
the same MAC address produce the same key.

Example
-------
    >>> resolve_index(IndexEncoding.DECIMAL_DOTTED, ["0", "17", "34", "51", "68", "85", "1"], width=6)
    '001122334455'
    >>> resolve_index(IndexEncoding.BINARY_SUFFIX, ["0", "17", "34", "51", "68", "85"])
    '001122334455'
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .errors import MalformedIndex

MAX_BYTE = 255
MAX_SUBIDENTIFIER = 0xFFFFFFFF


class IndexEncoding(Enum):
    BINARY_SUFFIX = "binary-suffix"
    DECIMAL_DOTTED = "decimal-dotted"


def split_arcs(identifier: str) -> List[str]:
    """Split a dotted OID into arcs, tolerating a leading dot."""
    text = identifier.strip()
    if text.startswith("."):
        text = text[1:]
    return text.split(".") if text else []


def _parse_arc(arc: str, upper: int) -> int:
    if not (arc.isascii() and arc.isdigit()):
        raise MalformedIndex(f"non-numeric index arc {arc!r}", details={"arc": arc})
    value = int(arc)
    if value > upper:
        raise MalformedIndex(
            f"index arc {value} out of range 0..{upper}",
            details={"arc": arc},
        )
    return value


def decode_binary_suffix(arcs: Sequence[str], width: Optional[int] = None) -> bytes:
    """Decode a verbatim suffix into key bytes."""
    if not arcs:
        raise MalformedIndex("empty index suffix")

    values = [_parse_arc(arc, MAX_SUBIDENTIFIER) for arc in arcs]
    if all(v <= MAX_BYTE for v in values):
        raw = bytes(values)
    else:
        raw = b"".join(v.to_bytes(4, "big") for v in values)

    if width is not None:
        raw = raw[:width]
    return raw


def decode_decimal_dotted(arcs: Sequence[str], width: Optional[int] = None) -> bytes:
    """Decode one-byte-per-arc decimal index into key bytes."""
    if not arcs:
        raise MalformedIndex("empty index suffix")

    raw = bytes(_parse_arc(arc, MAX_BYTE) for arc in arcs)

    if width is not None:
        if len(raw) < width:
            raise MalformedIndex(
                f"index has {len(raw)} bytes, expected at least {width}",
                details={"arcs": ".".join(arcs)},
            )
        raw = raw[:width]
    return raw


_DECODERS: Dict[IndexEncoding, Callable[[Sequence[str], Optional[int]], bytes]] = {
    IndexEncoding.BINARY_SUFFIX: decode_binary_suffix,
    IndexEncoding.DECIMAL_DOTTED: decode_decimal_dotted,
}


def normalize_key(raw: bytes) -> str:
    """Canonical EntityKey form: lowercase hex of the index bytes."""
    return raw.hex()


def resolve_index(
    encoding: IndexEncoding,
    arcs: Sequence[str],
    width: Optional[int] = None,
) -> str:
    """
    Resolve an index suffix to an EntityKey.

    Args:
        encoding: Index layout of the metric's table
        arcs: Suffix arcs left after stripping the metric prefix
        width: Keep only the first ``width`` bytes (AP hardware address)

    Returns:
        Lowercase hex entity key

    Raises:
        MalformedIndex: If the suffix is empty or an arc does not parse
    """
    return normalize_key(_DECODERS[encoding](arcs, width))
