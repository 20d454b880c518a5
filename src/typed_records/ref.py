"""Reference to a record taking part in a transaction."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_records.types import FieldDefinition, RecordTypeDefinition

if TYPE_CHECKING:
    from typed_records.types import TypeRegistry


class RecordRef:
    """A record paired with its type definition.

    One RecordRef is shared by every handler of a single load, so that the
    ``possible_key_hits`` counter is decremented in one place no matter which
    reply turns out empty.
    """

    def __init__(self, record: Any, type_def: RecordTypeDefinition) -> None:
        self.record = record
        self.type_def = type_def
        self.possible_key_hits = 0

    @classmethod
    def for_record(cls, registry: TypeRegistry, record: Any) -> RecordRef:
        """Build a reference for a record instance of a registered type."""
        return cls(record, registry.type_of(record))

    @classmethod
    def for_id(cls, registry: TypeRegistry, type_name: str, record_id: str) -> RecordRef:
        """Build a reference to a fresh, empty record with the given id."""
        type_def = registry.get_or_raise(type_name)
        return cls(type_def.new_record(record_id), type_def)

    @property
    def id(self) -> str:
        return self.record.get_id()

    @property
    def type_name(self) -> str:
        return self.type_def.name

    @property
    def key(self) -> str:
        """Key of the record's main hash."""
        return self.type_def.key(self.id)

    def field_key(self, field_def: FieldDefinition) -> str:
        """Key of one of the record's collection or relationship structures."""
        return self.type_def.field_key(self.id, field_def)

    def value(self, field_def: FieldDefinition) -> Any:
        return field_def.get(self.record)

    def __repr__(self) -> str:
        return f"RecordRef({self.key!r})"
