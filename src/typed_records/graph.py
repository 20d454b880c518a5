"""
Graph traversal: the commands and waiters that save, find and delete a record
together with its indexes, collections and relationships.

Nothing here talks to the store directly. Every function only queues work on
a Transaction; ``Transaction.exec()`` does the rest.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from typed_records import codec
from typed_records.errors import (
    ConversionError,
    MalformedRelationshipError,
    RecordError,
    UnregisteredTypeError,
    UnsavedReferenceError,
)
from typed_records.handlers import (
    collection_handler,
    decode_hash,
    exists_handler,
    fields_handler,
    publish_handler,
    record_handler,
    relation_handler,
)
from typed_records.record import generate_id, has_id
from typed_records.ref import RecordRef
from typed_records.types import Cardinality, FieldDefinition, IndexKind, RecordTypeDefinition

if TYPE_CHECKING:
    from typed_records.transaction import Transaction


# ---- save ----


def save_record(tx: Transaction, record: Any) -> None:
    """Queue everything needed to persist record.

    Field values and relationships are validated before anything is queued,
    so a malformed or unsaved reference fails without touching the store. A
    record that fails validation on its first save is left without an id.

    Raises:
        UnregisteredTypeError: If the record's class is not bound to a type.
        MalformedRelationshipError: If a relationship field has the wrong shape.
        UnsavedReferenceError: If a related record has no id.
        ConversionError: If a field value does not match its declared kind.
    """
    ref = RecordRef.for_record(tx.registry, record)
    assigned = not has_id(record)
    if assigned:
        # assigned up front so the record may reference itself
        record.set_id(generate_id())
    try:
        relations = [(rel, _relationship_ids(tx, ref, rel)) for rel in ref.type_def.relationships]
        scalars = _encode_scalars(ref)
        collections = _encode_collections(ref)
    except RecordError:
        if assigned:
            record.set_id("")
        raise

    # indexes go first: lexical ones read the previous value before it is overwritten
    _save_indexes(tx, ref)
    _save_scalars(tx, ref, scalars)
    tx.command("SADD", [ref.type_def.all_key, ref.id])
    _save_collections(tx, ref, collections)
    for rel, ids in relations:
        _save_relationship(tx, ref, rel, ids)


def _field_error(ref: RecordRef, field_def: FieldDefinition, error: Exception) -> ConversionError:
    return ConversionError(f"{ref.type_name}.{field_def.name}: {error}")


def _encode_scalars(ref: RecordRef) -> list[tuple[FieldDefinition, str | None]]:
    encoded: list[tuple[FieldDefinition, str | None]] = []
    for field_def in ref.type_def.scalars:
        value = ref.value(field_def)
        if value is None:
            encoded.append((field_def, None))
            continue
        try:
            encoded.append((field_def, codec.encode(field_def.kind, value)))  # type: ignore[arg-type]
        except ConversionError as e:
            raise _field_error(ref, field_def, e) from e
    return encoded


def _save_scalars(tx: Transaction, ref: RecordRef, scalars: list[tuple[FieldDefinition, str | None]]) -> None:
    args: list[Any] = [ref.key]
    cleared: list[str] = []
    for field_def, encoded in scalars:
        if encoded is None:
            cleared.append(field_def.store_name)
        else:
            args.extend([field_def.store_name, encoded])
    if len(args) > 1:
        tx.command("HMSET", args)
    if cleared:
        tx.command("HDEL", [ref.key, *cleared])


def _save_indexes(tx: Transaction, ref: RecordRef) -> None:
    for field_def in ref.type_def.indexes:
        index_key = ref.type_def.index_key(field_def)
        value = ref.value(field_def)
        if field_def.index is IndexKind.LEXICAL:
            _remove_old_lexical_index(tx, ref, field_def, value)
            if value is None:
                continue
            try:
                member = codec.lexical_member(codec.encode(field_def.kind, value), ref.id)  # type: ignore[arg-type]
            except ConversionError as e:
                raise _field_error(ref, field_def, e) from e
            tx.command("ZADD", [index_key, 0, member])
        else:
            if value is None:
                tx.command("ZREM", [index_key, ref.id])
                continue
            try:
                score = codec.index_score(field_def.index, value)  # type: ignore[arg-type]
            except ConversionError as e:
                raise _field_error(ref, field_def, e) from e
            tx.command("ZADD", [index_key, score, ref.id])


def _remove_old_lexical_index(
    tx: Transaction, ref: RecordRef, field_def: FieldDefinition, value: Any
) -> None:
    """Read the stored value in this round, drop its stale index member in the next.

    The removal lands one round trip after the new member is written, so the
    two are not atomic with each other.
    """
    data_key = f"{ref.key}:{field_def.store_name}:previous"
    index_key = ref.type_def.index_key(field_def)
    record_id = ref.id

    def remove_stale() -> None:
        previous = codec.decode_text(tx.data.get(data_key))
        if previous is not None and previous != value:
            tx.command("ZREM", [index_key, codec.lexical_member(previous, record_id)])

    tx.command("HGET", [ref.key, field_def.store_name], publish_handler(tx, data_key))
    tx.when_ready([data_key], remove_stale)


def _encode_collections(ref: RecordRef) -> list[tuple[FieldDefinition, list[str]]]:
    encoded_fields: list[tuple[FieldDefinition, list[str]]] = []
    for field_def in ref.type_def.lists + ref.type_def.sets:
        values = ref.value(field_def)
        if values is None:
            continue  # unset collections are left alone
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            raise ConversionError(
                f"{ref.type_name}.{field_def.name}: expected a collection, got {type(values).__name__}"
            )
        try:
            encoded = [codec.encode(field_def.kind, v) for v in values]  # type: ignore[arg-type]
        except ConversionError as e:
            raise _field_error(ref, field_def, e) from e
        encoded_fields.append((field_def, encoded))
    return encoded_fields


def _save_collections(tx: Transaction, ref: RecordRef, collections: list[tuple[FieldDefinition, list[str]]]) -> None:
    for field_def, encoded in collections:
        field_key = ref.field_key(field_def)
        tx.command("DEL", [field_key])
        if encoded:
            tx.command("RPUSH" if field_def.is_list else "SADD", [field_key, *encoded])


def _related_id(tx: Transaction, ref: RecordRef, rel: FieldDefinition, related: Any) -> str:
    try:
        related_type = tx.registry.type_of(related)
    except UnregisteredTypeError:
        raise MalformedRelationshipError(
            f"{ref.type_name}.{rel.name}: cannot convert {type(related).__name__} to a {rel.target} record"
        )
    if related_type.name != rel.target:
        raise MalformedRelationshipError(
            f"{ref.type_name}.{rel.name}: expected a {rel.target} record, got {related_type.name}"
        )
    if not has_id(related):
        raise UnsavedReferenceError(
            f"{ref.type_name}.{rel.name}: cannot save a relation to a {rel.target} with no id; "
            "save the related record first"
        )
    return related.get_id()


def _relationship_ids(tx: Transaction, ref: RecordRef, rel: FieldDefinition) -> str | list[str] | None:
    """The id(s) a relationship field refers to, or None when it is unset."""
    value = ref.value(rel)
    if value is None:
        return None
    if rel.cardinality is Cardinality.TO_ONE:
        return _related_id(tx, ref, rel, value)
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise MalformedRelationshipError(
            f"{ref.type_name}.{rel.name}: expected a collection of {rel.target} records, "
            f"got {type(value).__name__}"
        )
    return [_related_id(tx, ref, rel, related) for related in value]


def _save_relationship(tx: Transaction, ref: RecordRef, rel: FieldDefinition, ids: str | list[str] | None) -> None:
    relation_key = ref.field_key(rel)
    if rel.cardinality is Cardinality.TO_ONE:
        if ids is None:
            tx.command("DEL", [relation_key])
        else:
            tx.command("SET", [relation_key, ids])
        return
    if ids is None:
        return
    tx.command("DEL", [relation_key])
    if ids:
        tx.command("SADD", [relation_key, *ids])


# ---- find ----


def find_by_id(tx: Transaction, type_name: str, record_id: str, includes: list[str] | None = None) -> Any:
    """Queue a find for a record by type name and id; returns the record to be filled."""
    type_def = tx.registry.get_or_raise(type_name)
    cached = tx.record_cache.get(type_def.key(record_id))
    if cached is not None:
        return cached
    return find_record(tx, RecordRef(type_def.new_record(record_id), type_def), includes)


def find_record(tx: Transaction, ref: RecordRef, includes: list[str] | None = None) -> Any:
    """Queue the reads that fill ref's record.

    Returns the record that will hold the result: the one already cached in
    this transaction under the same key, or ref's own record.

    Args:
        includes: Field names to load; None loads every field.
    """
    type_def = ref.type_def
    for name in includes or ():
        type_def.get_field_or_raise(name)

    cached = tx.record_cache.get(ref.key)
    if cached is not None:
        return cached
    tx.record_cache[ref.key] = ref.record

    def wanted(field_def: FieldDefinition) -> bool:
        return includes is None or field_def.name in includes

    scalars = [f for f in type_def.scalars if wanted(f)]
    collections = [f for f in type_def.lists + type_def.sets if wanted(f)]
    relationships = [f for f in type_def.relationships if wanted(f)]
    reads_hash = includes is None or bool(scalars)

    ref.possible_key_hits = int(reads_hash) + len(collections) + len(relationships)
    if ref.possible_key_hits == 0:
        tx.command("SISMEMBER", [type_def.all_key, ref.id], exists_handler(ref))
        return ref.record

    if includes is None:
        tx.command("HGETALL", [ref.key], record_handler(tx, ref))
    elif scalars:
        tx.command("HMGET", [ref.key, *(f.store_name for f in scalars)], fields_handler(tx, ref, scalars))

    for field_def in collections:
        if field_def.is_list:
            tx.command("LRANGE", [ref.field_key(field_def), 0, -1], collection_handler(tx, ref, field_def))
        else:
            tx.command("SMEMBERS", [ref.field_key(field_def)], collection_handler(tx, ref, field_def))

    for rel in relationships:
        _find_relationship(tx, ref, rel)

    return ref.record


def _find_relationship(tx: Transaction, ref: RecordRef, rel: FieldDefinition) -> None:
    """Fetch the related id(s) in this round, then recurse once they arrive."""
    relation_key = ref.field_key(rel)
    data_key = f"{relation_key}:ids"
    target = tx.registry.get_or_raise(rel.target)  # type: ignore[arg-type]

    if rel.cardinality is Cardinality.TO_ONE:
        tx.command("GET", [relation_key], relation_handler(tx, ref, data_key))
    else:
        tx.command("SMEMBERS", [relation_key], relation_handler(tx, ref, data_key))

    def load_related() -> None:
        ids = tx.data.get(data_key)
        if rel.cardinality is Cardinality.TO_ONE:
            rel.set(ref.record, _find_related(tx, target, ids) if ids else None)
        else:
            rel.set(ref.record, [_find_related(tx, target, record_id) for record_id in ids])

    tx.when_ready([data_key], load_related)


def _find_related(tx: Transaction, target: RecordTypeDefinition, record_id: str) -> Any:
    cached = tx.record_cache.get(target.key(record_id))
    if cached is not None:
        return cached
    return find_record(tx, RecordRef(target.new_record(record_id), target))


# ---- delete ----


def delete_record(tx: Transaction, record: Any) -> None:
    """Queue the deletion of a saved record."""
    type_def = tx.registry.type_of(record)
    if not has_id(record):
        raise ValueError(f"cannot delete a {type_def.name} that has no id")
    delete_record_by_id(tx, type_def.name, record.get_id())


def delete_record_by_id(tx: Transaction, type_name: str, record_id: str) -> None:
    """Queue the deletion of a record, its structures and its index entries.

    Lexical index members embed the stored value, so the stored hash is read
    in the same round as the deletion and a waiter removes those members in
    the next one. Deleting a record that was never saved is a no-op.

    Raises:
        UnregisteredTypeError: If type_name is unknown.
    """
    type_def = tx.registry.get_or_raise(type_name)
    key = type_def.key(record_id)

    lexical = [f for f in type_def.indexes if f.index is IndexKind.LEXICAL]
    if lexical:
        data_key = f"{key}:stored"

        def remove_lexical() -> None:
            stored = tx.data.get(data_key)
            for field_def in lexical:
                value = codec.decode_text(stored.get(field_def.store_name))
                if value is not None:
                    tx.command("ZREM", [type_def.index_key(field_def), codec.lexical_member(value, record_id)])

        tx.command("HGETALL", [key], publish_handler(tx, data_key, decode_hash))
        tx.when_ready([data_key], remove_lexical)

    for field_def in type_def.indexes:
        if field_def.index is not IndexKind.LEXICAL:
            tx.command("ZREM", [type_def.index_key(field_def), record_id])

    tx.command("DEL", [key])
    for field_def in type_def.lists + type_def.sets + type_def.relationships:
        tx.command("DEL", [type_def.field_key(record_id, field_def)])
    tx.command("SREM", [type_def.all_key, record_id])
