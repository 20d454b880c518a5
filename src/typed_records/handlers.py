"""Reply handlers that reconcile store replies with in-memory records.

Not-found policy: every handler tied to one record load shares the
RecordRef's ``possible_key_hits`` counter, initialised to the number of
structures read for that record. Each empty reply decrements it. Only when it
reaches zero is the existence index consulted, with a SISMEMBER queued for the
next round trip: absent means NotFoundError, present means the record exists
with every read field empty.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable

from typed_records import codec
from typed_records.batch import Handler
from typed_records.errors import ConversionError, NotFoundError, RemoteProtocolError
from typed_records.ref import RecordRef
from typed_records.types import FieldDefinition

if TYPE_CHECKING:
    from typed_records.transaction import Transaction


def _decode_into(ref: RecordRef, field_def: FieldDefinition, raw: Any) -> None:
    try:
        value = codec.decode(field_def.kind, raw)  # type: ignore[arg-type]
    except ConversionError as e:
        raise ConversionError(f"{ref.type_name}.{field_def.name}: {e}") from e
    field_def.set(ref.record, value)


def _as_mapping(reply: Any) -> Mapping[Any, Any]:
    """HGETALL replies arrive as a dict, or as a flat list without a response callback."""
    if reply is None:
        return {}
    if isinstance(reply, Mapping):
        return reply
    if isinstance(reply, (list, tuple)):
        return dict(zip(reply[::2], reply[1::2]))
    raise RemoteProtocolError(f"expected a hash reply, got {type(reply).__name__}")


def _as_sequence(reply: Any) -> list[Any]:
    if reply is None:
        return []
    if isinstance(reply, (list, tuple, set, frozenset)):
        return list(reply)
    raise RemoteProtocolError(f"expected a multi-bulk reply, got {type(reply).__name__}")


def _key_text(key: Any) -> str:
    return key.decode("utf-8") if isinstance(key, bytes) else key


def record_miss(tx: Transaction, ref: RecordRef) -> None:
    """Account for one empty reply while loading ref."""
    ref.possible_key_hits -= 1
    if ref.possible_key_hits == 0:
        # Nothing held data for this record: it was never saved, or every
        # field is empty. The existence index tells the two apart.
        tx.command("SISMEMBER", [ref.type_def.all_key, ref.id], exists_handler(ref))


def exists_handler(ref: RecordRef) -> Handler:
    """Raise NotFoundError unless the existence index holds the record's id."""

    def handle(reply: Any) -> None:
        if not reply:
            raise NotFoundError(ref.key, ref.type_name)

    return handle


def scalar_handler(ref: RecordRef, field_def: FieldDefinition) -> Handler:
    """Convert a single reply value into one field."""

    def handle(reply: Any) -> None:
        _decode_into(ref, field_def, reply)

    return handle


def fields_handler(tx: Transaction, ref: RecordRef, field_defs: list[FieldDefinition]) -> Handler:
    """Convert an HMGET reply into the given fields, matched by position."""

    def handle(reply: Any) -> None:
        values = _as_sequence(reply)
        if all(v is None for v in values):
            record_miss(tx, ref)
            return
        if len(values) != len(field_defs):
            raise RemoteProtocolError(
                f"expected {len(field_defs)} values for {ref.key}, got {len(values)}"
            )
        for field_def, raw in zip(field_defs, values):
            _decode_into(ref, field_def, raw)

    return handle


def record_handler(tx: Transaction, ref: RecordRef) -> Handler:
    """Convert an HGETALL reply into every scalar field of the record's type."""

    def handle(reply: Any) -> None:
        stored = decode_hash(reply)
        if not stored:
            record_miss(tx, ref)
            return
        for field_def in ref.type_def.scalars:
            _decode_into(ref, field_def, stored.get(field_def.store_name))

    return handle


def collection_handler(tx: Transaction, ref: RecordRef, field_def: FieldDefinition) -> Handler:
    """Convert an LRANGE or SMEMBERS reply into a list or set field."""

    def handle(reply: Any) -> None:
        elements = _as_sequence(reply)
        if not elements:
            record_miss(tx, ref)
        try:
            values = [codec.decode(field_def.kind, el) for el in elements]  # type: ignore[arg-type]
        except ConversionError as e:
            raise ConversionError(f"{ref.type_name}.{field_def.name}: {e}") from e
        field_def.set(ref.record, values if field_def.is_list else set(values))

    return handle


def publish_handler(
    tx: Transaction, key: str, convert: Callable[[Any], Any] | None = None
) -> Handler:
    """Forward a reply, optionally converted, into the deferred-data registry."""

    def handle(reply: Any) -> None:
        tx.publish(key, convert(reply) if convert is not None else reply)

    return handle


def relation_handler(tx: Transaction, ref: RecordRef, data_key: str) -> Handler:
    """Publish the id(s) a relationship key holds, counting an empty reply as a miss."""

    def handle(reply: Any) -> None:
        if isinstance(reply, (list, tuple, set, frozenset)):
            ids: Any = sorted(codec.decode_text(r) for r in reply)
            empty = not ids
        else:
            ids = codec.decode_text(reply)
            empty = not ids
        if empty:
            record_miss(tx, ref)
        tx.publish(data_key, ids)

    return handle


def decode_hash(reply: Any) -> dict[str, Any]:
    """Normalise an HGETALL reply to a str-keyed dict."""
    return {_key_text(k): v for k, v in _as_mapping(reply).items()}
