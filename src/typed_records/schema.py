"""Schema class tying a type registry to a store."""

from __future__ import annotations

from typing import Any, Iterable

from typed_records.config import StoreConfig
from typed_records.connection import ConnectionPool
from typed_records.graph import delete_record, delete_record_by_id, find_by_id, save_record
from typed_records.logger import configure_logging
from typed_records.parsing import TypeParser
from typed_records.query import Query
from typed_records.transaction import Transaction
from typed_records.types import RecordTypeDefinition, TypeRegistry


class Schema:
    """Registered record types plus the connection pool they are stored through.

    Each operation runs in its own transaction. Use ``transaction()`` to batch
    several saves, finds and deletes into the same round trips.
    """

    def __init__(self, registry: TypeRegistry, pool: ConnectionPool) -> None:
        """Initialize a schema.

        Args:
            registry: Type registry with all record types.
            pool: Pool every transaction acquires its connection from.
        """
        registry.validate()
        self.registry = registry
        self.pool = pool

    @classmethod
    def parse(
        cls,
        type_definitions: str,
        pool: ConnectionPool | None = None,
        config: StoreConfig | None = None,
    ) -> Schema:
        """Parse type definitions and create a schema.

        Args:
            type_definitions: DSL string defining record types.
            pool: Connection pool to use; built from config when omitted.
            config: Store settings; read from the environment when omitted.

        Returns:
            A new Schema instance.
        """
        registry = TypeParser().parse(type_definitions)
        if pool is None:
            config = config or StoreConfig.from_env()
            configure_logging(config.log_level)
            pool = ConnectionPool.from_config(config)
        return cls(registry, pool)

    def get_type(self, name: str) -> RecordTypeDefinition:
        """Get a record type by name.

        Raises:
            UnregisteredTypeError: If the type is not registered.
        """
        return self.registry.get_or_raise(name)

    def list_types(self) -> list[str]:
        return self.registry.list_types()

    def new(self, type_name: str, **values: Any) -> Any:
        """Create an unsaved record of a registered type."""
        return self.get_type(type_name).new_record(**values)

    def transaction(self) -> Transaction:
        """Open a transaction; queue operations on it with the graph functions, then ``exec()``."""
        return Transaction(self.registry, self.pool)

    def save(self, record: Any) -> Any:
        """Save a record, assigning an id on first save.

        Related records must already have ids; they are referenced, not saved.

        Returns:
            The saved record.
        """
        with self.transaction() as tx:
            save_record(tx, record)
            tx.exec()
        return record

    def save_all(self, records: Iterable[Any]) -> list[Any]:
        """Save several records in one transaction."""
        saved = list(records)
        with self.transaction() as tx:
            for record in saved:
                save_record(tx, record)
            tx.exec()
        return saved

    def find_by_id(self, type_name: str, record_id: str, includes: list[str] | None = None) -> Any:
        """Load a record and everything it relates to.

        Args:
            type_name: Name of the record type.
            record_id: Id assigned when the record was saved.
            includes: Field names to load; every field when omitted.

        Raises:
            NotFoundError: If the record, or a record it relates to, does not exist.
        """
        with self.transaction() as tx:
            record = find_by_id(tx, type_name, record_id, includes)
            tx.exec()
        return record

    def scan_by_id(self, type_name: str, record_id: str, includes: list[str] | None = None) -> Any:
        """Load a record from its main hash only, skipping relationships.

        Equivalent to ``find_by_id`` with ``includes`` limited to scalar and
        collection fields.
        """
        type_def = self.get_type(type_name)
        names = [f.name for f in type_def.fields if not f.is_relationship]
        if includes is not None:
            names = [name for name in names if name in includes]
        return self.find_by_id(type_name, record_id, names)

    def delete(self, record: Any) -> None:
        """Delete a saved record along with its index entries."""
        with self.transaction() as tx:
            delete_record(tx, record)
            tx.exec()

    def delete_by_id(self, type_name: str, record_id: str) -> None:
        """Delete a record by type name and id; a missing record is not an error."""
        with self.transaction() as tx:
            delete_record_by_id(tx, type_name, record_id)
            tx.exec()

    def query(self, type_name: str) -> Query:
        """Start a query over every record of a type."""
        return Query(self.registry, self.pool, type_name)

    def close(self) -> None:
        self.pool.close()

    def __enter__(self) -> Schema:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
