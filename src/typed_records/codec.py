"""Conversion between field values and the strings the store holds.

Each scalar kind registers one converter; index kinds derive their score or
sorted-set member from the same values. Conversions fail with
``ConversionError`` instead of coercing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from typed_records.errors import ConversionError
from typed_records.types import IndexKind, ScalarKind

LEXICAL_SEPARATOR = " "


@dataclass(frozen=True)
class Converter:
    """Encoder/decoder pair for one scalar kind."""

    kind: ScalarKind
    encode: Callable[[Any], str]
    decode: Callable[[str], Any]


def _text(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    if isinstance(raw, str):
        return raw
    return str(raw)


def _encode_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ConversionError(f"expected str, got {type(value).__name__}")
    return value


def _encode_int(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConversionError(f"expected int, got {type(value).__name__}")
    return str(value)


def _decode_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConversionError(f"cannot convert {raw!r} to int")


def _encode_float(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConversionError(f"expected float, got {type(value).__name__}")
    return repr(float(value))


def _decode_float(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConversionError(f"cannot convert {raw!r} to float")


def _encode_bool(value: Any) -> str:
    if not isinstance(value, bool):
        raise ConversionError(f"expected bool, got {type(value).__name__}")
    return "1" if value else "0"


def _decode_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in ("1", "true"):
        return True
    if lowered in ("0", "false"):
        return False
    raise ConversionError(f"cannot convert {raw!r} to bool")


CONVERTERS: dict[ScalarKind, Converter] = {
    ScalarKind.STRING: Converter(ScalarKind.STRING, _encode_string, lambda raw: raw),
    ScalarKind.INT: Converter(ScalarKind.INT, _encode_int, _decode_int),
    ScalarKind.FLOAT: Converter(ScalarKind.FLOAT, _encode_float, _decode_float),
    ScalarKind.BOOL: Converter(ScalarKind.BOOL, _encode_bool, _decode_bool),
}


def encode(kind: ScalarKind, value: Any) -> str:
    """Encode a field value for the store."""
    return CONVERTERS[kind].encode(value)


def decode(kind: ScalarKind, raw: Any) -> Any:
    """Decode a store reply element into a field value (None stays None)."""
    if raw is None:
        return None
    return CONVERTERS[kind].decode(_text(raw))


def decode_text(raw: Any) -> str | None:
    """Decode a reply element that is known to be text, such as an id."""
    if raw is None:
        return None
    return _text(raw)


def index_score(index: IndexKind, value: Any) -> float:
    """Score of a numeric or boolean index entry."""
    if index is IndexKind.BOOLEAN:
        if not isinstance(value, bool):
            raise ConversionError(f"expected bool, got {type(value).__name__}")
        return 1.0 if value else 0.0
    if index is IndexKind.NUMERIC:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConversionError(f"expected a number, got {type(value).__name__}")
        return float(value)
    raise ConversionError(f"{index.value} indexes have no score")


def lexical_member(value: str, record_id: str) -> str:
    """Sorted-set member for a lexical index entry."""
    return f"{value}{LEXICAL_SEPARATOR}{record_id}"


def split_lexical_member(member: Any) -> tuple[str, str]:
    """Recover the value and record id from a lexical index member."""
    value, _, record_id = _text(member).rpartition(LEXICAL_SEPARATOR)
    return value, record_id
