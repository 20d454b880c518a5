"""
Error classes for typed_records.

Every failure during save / find / delete / query surfaces as one of these,
raised synchronously to the caller of the top-level operation. Nothing is
retried automatically.
"""

from __future__ import annotations


class RecordError(Exception):
    """Base exception for typed_records."""
    pass


class NotFoundError(RecordError):
    """The record is absent from its type's existence index."""

    def __init__(self, key: str, type_name: str) -> None:
        super().__init__(f"could not find {type_name} with key {key}")
        self.key = key
        self.type_name = type_name


class UnregisteredTypeError(RecordError):
    """An operation named a record type the registry does not know."""

    def __init__(self, type_name: str) -> None:
        super().__init__(f"record type '{type_name}' is not registered")
        self.type_name = type_name


class MalformedRelationshipError(RecordError):
    """A relationship field does not hold the expected record reference shape."""
    pass


class UnsavedReferenceError(RecordError):
    """A relationship points at a record that has no id yet.

    The referenced record must be saved first.
    """
    pass


class ConversionError(RecordError):
    """A stored value could not be converted to the field's declared kind."""
    pass


class InvalidQueryError(RecordError):
    """A query filter or ordering cannot be served by the record's indexes."""
    pass


class DependencyDeadlockError(RecordError):
    """The transaction ran out of commands while waiters were still pending.

    Either some data was never published or the waiters depend on each other.
    """

    def __init__(self, waiting: int, pending_keys: list[str]) -> None:
        super().__init__(
            "transaction finished executing but some pending data was never sent: "
            f"{waiting} function(s) were still waiting and never executed; "
            f"pending data: {pending_keys}"
        )
        self.waiting = waiting
        self.pending_keys = pending_keys


class RemoteProtocolError(RecordError):
    """Transport or protocol failure reported by the store."""
    pass
