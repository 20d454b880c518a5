"""Record base class and generated record classes."""

from __future__ import annotations

import dataclasses
import uuid
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typed_records.types import RecordTypeDefinition


@runtime_checkable
class RecordLike(Protocol):
    """Anything the engine can persist: it only needs an id accessor pair."""

    def get_id(self) -> str: ...

    def set_id(self, record_id: str) -> None: ...


def generate_id() -> str:
    """Return a random record identifier."""
    return uuid.uuid4().hex


def has_id(record: Any) -> bool:
    """Whether a record has been assigned an identifier."""
    return bool(record.get_id())


@dataclasses.dataclass(eq=False, repr=False)
class Record:
    """Base class for application records.

    Equality is identity: records of one find share identity, and related
    records may reference each other in cycles.
    """

    id: str | None = None

    def get_id(self) -> str:
        return self.id or ""

    def set_id(self, record_id: str) -> None:
        self.id = record_id

    def __repr__(self) -> str:
        parts = []
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            parts.append(f"{f.name}={_short_repr(value)}")
        return f"{type(self).__name__}({', '.join(parts)})"


def _short_repr(value: Any) -> str:
    """Repr that shows related records by id so cycles terminate."""
    if isinstance(value, Record):
        return f"<{type(value).__name__} {value.get_id() or '?'}>"
    if isinstance(value, list) and value and isinstance(value[0], Record):
        return "[" + ", ".join(_short_repr(v) for v in value) + "]"
    return repr(value)


def make_record_class(type_def: RecordTypeDefinition) -> type:
    """Generate a Record dataclass with one attribute per field, all defaulting to None."""
    for f in type_def.fields:
        if f.name == "id":
            raise ValueError(f"Type '{type_def.name}': 'id' is reserved for the record identifier")
    fields = [(f.name, Any, dataclasses.field(default=None)) for f in type_def.fields]
    return dataclasses.make_dataclass(
        type_def.name,
        fields,
        bases=(Record,),
        eq=False,
        repr=False,
    )
