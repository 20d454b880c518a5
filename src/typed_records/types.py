"""Type definitions for the typed_records library."""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from typed_records.errors import UnregisteredTypeError

if TYPE_CHECKING:
    from typed_records.record import RecordLike


class ScalarKind(Enum):
    """Value kinds a scalar field or collection element may hold."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"


# Mapping from type name strings to ScalarKind enum values
SCALAR_KIND_NAMES: dict[str, ScalarKind] = {sk.value: sk for sk in ScalarKind}


class IndexKind(Enum):
    """How an indexed field is laid out in its sorted set."""

    NUMERIC = "numeric"  # score = value, member = id
    LEXICAL = "lexical"  # score = 0, member = "value id"
    BOOLEAN = "boolean"  # score = 0/1, member = id

    @classmethod
    def for_scalar(cls, kind: ScalarKind) -> IndexKind:
        """Return the index kind implied by a scalar kind."""
        if kind is ScalarKind.STRING:
            return cls.LEXICAL
        if kind is ScalarKind.BOOL:
            return cls.BOOLEAN
        return cls.NUMERIC


class FieldCategory(Enum):
    """Which remote structure a field lives in."""

    SCALAR = "scalar"  # a field of the record's main hash
    LIST = "list"  # {Type}:{id}:{field} list
    SET = "set"  # {Type}:{id}:{field} set
    RELATIONSHIP = "relationship"  # {Type}:{id}:{field} string or set of ids


class Cardinality(Enum):
    """Cardinality of a relationship field."""

    TO_ONE = "one"
    TO_MANY = "many"


@dataclass(eq=False)
class FieldDefinition:
    """Definition of a field within a record type.

    The getter/setter pair is built once here so that the engine never has
    to introspect record objects.
    """

    name: str
    category: FieldCategory
    kind: ScalarKind | None = None  # scalar kind, or element kind for collections
    index: IndexKind | None = None
    target: str | None = None  # relationship target type name
    cardinality: Cardinality | None = None
    store_name: str = ""  # name used in store keys / hash fields
    getter: Callable[[Any], Any] = field(init=False, repr=False)
    setter: Callable[[Any, Any], None] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.store_name:
            self.store_name = self.name
        if self.category is FieldCategory.RELATIONSHIP:
            if self.target is None or self.cardinality is None:
                raise ValueError(f"Relationship field '{self.name}' needs a target and a cardinality")
        elif self.kind is None:
            raise ValueError(f"Field '{self.name}' needs a scalar kind")
        if self.index is not None and self.category is not FieldCategory.SCALAR:
            raise ValueError(f"Field '{self.name}': only scalar fields can be indexed")
        name = self.name
        self.getter = operator.attrgetter(name)

        def _set(record: Any, value: Any) -> None:
            setattr(record, name, value)

        self.setter = _set

    @property
    def is_scalar(self) -> bool:
        return self.category is FieldCategory.SCALAR

    @property
    def is_list(self) -> bool:
        return self.category is FieldCategory.LIST

    @property
    def is_set(self) -> bool:
        return self.category is FieldCategory.SET

    @property
    def is_collection(self) -> bool:
        return self.category in (FieldCategory.LIST, FieldCategory.SET)

    @property
    def is_relationship(self) -> bool:
        return self.category is FieldCategory.RELATIONSHIP

    @property
    def is_indexed(self) -> bool:
        return self.index is not None

    def get(self, record: Any) -> Any:
        """Read this field from a record, treating a missing attribute as unset."""
        try:
            return self.getter(record)
        except AttributeError:
            return None

    def set(self, record: Any, value: Any) -> None:
        """Write this field on a record."""
        self.setter(record, value)


@dataclass(eq=False)
class RecordTypeDefinition:
    """A record type: its canonical name and field table."""

    name: str
    fields: list[FieldDefinition] = field(default_factory=list)
    record_class: type | None = None

    @property
    def scalars(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.is_scalar]

    @property
    def lists(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.is_list]

    @property
    def sets(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.is_set]

    @property
    def relationships(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.is_relationship]

    @property
    def indexes(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.is_indexed]

    @property
    def all_key(self) -> str:
        """Key of the existence index: the set of every saved id."""
        return f"{self.name}:all"

    def key(self, record_id: str) -> str:
        """Key of the main hash for a record."""
        return f"{self.name}:{record_id}"

    def field_key(self, record_id: str, field_def: FieldDefinition) -> str:
        """Key of a collection or relationship structure for a record."""
        return f"{self.name}:{record_id}:{field_def.store_name}"

    def index_key(self, field_def: FieldDefinition) -> str:
        """Key of the sorted set indexing a field."""
        return f"{self.name}:{field_def.store_name}"

    def get_field(self, name: str) -> FieldDefinition | None:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_or_raise(self, name: str) -> FieldDefinition:
        """Get a field by name, raising if not found."""
        f = self.get_field(name)
        if f is None:
            raise ValueError(f"Field '{name}' not found in type '{self.name}'")
        return f

    def new_record(self, record_id: str | None = None, **values: Any) -> RecordLike:
        """Instantiate an empty record of this type, optionally with an id."""
        if self.record_class is None:
            raise ValueError(f"Type '{self.name}' has no record class bound")
        record = self.record_class()
        for name, value in values.items():
            self.get_field_or_raise(name).set(record, value)
        if record_id:
            record.set_id(record_id)
        return record


class TypeRegistry:
    """Registry of all record types.

    Built once at startup and handed to every transaction; there is no
    module-level registry.
    """

    def __init__(self) -> None:
        self._types: dict[str, RecordTypeDefinition] = {}
        self._names_by_class: dict[type, str] = {}

    def register(self, type_def: RecordTypeDefinition) -> RecordTypeDefinition:
        """Register a record type, generating a record class if none is bound."""
        if type_def.name in self._types and self._types[type_def.name] is not type_def:
            raise ValueError(f"Type '{type_def.name}' is already defined")
        self._types[type_def.name] = type_def
        if type_def.record_class is None:
            from typed_records.record import make_record_class

            type_def.record_class = make_record_class(type_def)
        self._names_by_class[type_def.record_class] = type_def.name
        return type_def

    def register_stub(self, name: str) -> RecordTypeDefinition:
        """Pre-register an empty record type for forward/self-references.

        Idempotent: returns the existing stub if name is already an empty type.
        """
        existing = self._types.get(name)
        if existing is not None:
            if not existing.fields:
                return existing
            raise ValueError(f"Type '{name}' is already defined")
        stub = RecordTypeDefinition(name=name)
        self._types[name] = stub
        return stub

    def bind(self, name: str, record_class: type) -> None:
        """Bind an application class to a registered type.

        The class must be constructible without arguments and expose
        ``get_id()`` / ``set_id()``.
        """
        type_def = self.get_or_raise(name)
        if not callable(getattr(record_class, "get_id", None)) or not callable(
            getattr(record_class, "set_id", None)
        ):
            raise TypeError(f"{record_class.__name__} must define get_id() and set_id()")
        if type_def.record_class is not None:
            self._names_by_class.pop(type_def.record_class, None)
        type_def.record_class = record_class
        self._names_by_class[record_class] = name

    def get(self, name: str) -> RecordTypeDefinition | None:
        """Get a type by name."""
        return self._types.get(name)

    def get_or_raise(self, name: str) -> RecordTypeDefinition:
        """Get a type by name, raising if not found."""
        type_def = self._types.get(name)
        if type_def is None:
            raise UnregisteredTypeError(name)
        return type_def

    def type_of(self, record: Any) -> RecordTypeDefinition:
        """Return the registered type of a record instance."""
        name = self._names_by_class.get(type(record))
        if name is None:
            raise UnregisteredTypeError(type(record).__name__)
        return self._types[name]

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return list(self._types.keys())

    def validate(self) -> None:
        """Check that every relationship targets a registered type."""
        for type_def in self._types.values():
            for rel in type_def.relationships:
                if rel.target not in self._types:
                    raise UnregisteredTypeError(rel.target or "")

    def __contains__(self, name: str) -> bool:
        return name in self._types
