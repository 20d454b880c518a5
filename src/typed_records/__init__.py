"""Typed Records - A typed object mapping over a Redis store."""

from typed_records.config import StoreConfig
from typed_records.connection import ConnectionPool
from typed_records.errors import (
    ConversionError,
    DependencyDeadlockError,
    InvalidQueryError,
    MalformedRelationshipError,
    NotFoundError,
    RecordError,
    RemoteProtocolError,
    UnregisteredTypeError,
    UnsavedReferenceError,
)
from typed_records.parsing import TypeParser
from typed_records.query import Query
from typed_records.record import Record
from typed_records.schema import Schema
from typed_records.transaction import Transaction
from typed_records.types import (
    Cardinality,
    FieldCategory,
    FieldDefinition,
    IndexKind,
    RecordTypeDefinition,
    ScalarKind,
    TypeRegistry,
)

__all__ = [
    # Main API
    "Schema",
    "Query",
    "Transaction",
    "TypeParser",
    "Record",
    # Store
    "StoreConfig",
    "ConnectionPool",
    # Type definitions
    "ScalarKind",
    "IndexKind",
    "FieldCategory",
    "Cardinality",
    "FieldDefinition",
    "RecordTypeDefinition",
    "TypeRegistry",
    # Errors
    "RecordError",
    "NotFoundError",
    "UnregisteredTypeError",
    "MalformedRelationshipError",
    "UnsavedReferenceError",
    "ConversionError",
    "InvalidQueryError",
    "DependencyDeadlockError",
    "RemoteProtocolError",
]

__version__ = "0.1.0"
