"""
Query scans over a record type.

A query reads its candidate ids from the existence index and the field
indexes, all in one round trip, then loads the matching records in the next:

    schema.query("Person").filter('age >= 21 and name = "Alex"').order("-age").limit(10).run()

Only indexed fields can be filtered on or ordered by. Conditions are joined
with ``and``; a record with no value for a filtered field never matches.
"""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING, Any, Callable

from typed_records import codec
from typed_records.errors import InvalidQueryError
from typed_records.graph import find_by_id
from typed_records.handlers import publish_handler
from typed_records.logger import get_logger
from typed_records.parsing.filter_parser import Condition, FilterParser
from typed_records.transaction import Transaction
from typed_records.types import FieldDefinition, IndexKind

if TYPE_CHECKING:
    from typed_records.connection import ConnectionPool
    from typed_records.types import RecordTypeDefinition, TypeRegistry

logger = get_logger(__name__)

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _ids(reply: Any) -> list[str]:
    return [codec.decode_text(r) for r in reply or []]  # type: ignore[misc]


def _score(value: float) -> str:
    return repr(float(value))


class Query:
    """Builder for a scan over one record type.

    Builder methods return the query itself so calls can be chained; nothing
    touches the store until ``run()``, ``ids()`` or ``count()``.
    """

    def __init__(self, registry: TypeRegistry, pool: ConnectionPool, type_name: str) -> None:
        self.registry = registry
        self.pool = pool
        self.type_def: RecordTypeDefinition = registry.get_or_raise(type_name)
        self.conditions: list[Condition] = []
        self.included: list[str] | None = None
        self.excluded: list[str] = []
        self.order_field: FieldDefinition | None = None
        self.descending = False
        self.limit_count: int | None = None
        self.offset_count = 0

    # -- building -------------------------------------------------------

    def _field(self, name: str) -> FieldDefinition:
        field_def = self.type_def.get_field(name)
        if field_def is None:
            raise InvalidQueryError(f"{self.type_def.name} has no field '{name}'")
        return field_def

    def _indexed_field(self, name: str) -> FieldDefinition:
        field_def = self._field(name)
        if not field_def.is_indexed:
            raise InvalidQueryError(f"{self.type_def.name}.{name} is not indexed")
        return field_def

    def include(self, *fields: str) -> Query:
        """Load only these fields of each matching record."""
        for name in fields:
            self._field(name)
        self.included = (self.included or []) + list(fields)
        return self

    def exclude(self, *fields: str) -> Query:
        """Skip these fields when loading matching records."""
        for name in fields:
            self._field(name)
        self.excluded.extend(fields)
        return self

    def order(self, field: str) -> Query:
        """Order by an indexed field; a leading ``-`` orders descending."""
        descending = field.startswith("-")
        self.order_field = self._indexed_field(field.lstrip("-"))
        self.descending = descending
        return self

    def filter(self, expression: str) -> Query:
        """Add conditions such as ``'age >= 21 and active = true'``.

        Raises:
            SyntaxError: If the expression does not parse.
            InvalidQueryError: If a condition does not fit its field's index.
        """
        for condition in FilterParser().parse(expression):
            self._check_condition(condition)
            self.conditions.append(condition)
        return self

    def limit(self, count: int) -> Query:
        if count < 0:
            raise InvalidQueryError(f"limit must not be negative, got {count}")
        self.limit_count = count
        return self

    def offset(self, count: int) -> Query:
        if count < 0:
            raise InvalidQueryError(f"offset must not be negative, got {count}")
        self.offset_count = count
        return self

    def _check_condition(self, condition: Condition) -> None:
        field_def = self._indexed_field(condition.field)
        value = condition.value
        if field_def.index is IndexKind.LEXICAL:
            if not isinstance(value, str):
                raise InvalidQueryError(f"{self.type_def.name}.{field_def.name} compares with strings")
        elif field_def.index is IndexKind.BOOLEAN:
            if not isinstance(value, bool):
                raise InvalidQueryError(f"{self.type_def.name}.{field_def.name} compares with true or false")
            if condition.operator not in ("=", "!="):
                raise InvalidQueryError(
                    f"{self.type_def.name}.{field_def.name} only supports = and !="
                )
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidQueryError(f"{self.type_def.name}.{field_def.name} compares with numbers")

    # -- planning -------------------------------------------------------

    def _includes(self) -> list[str] | None:
        if self.included is None and not self.excluded:
            return None
        names = self.included if self.included is not None else [f.name for f in self.type_def.fields]
        return [name for name in names if name not in self.excluded]

    def _condition_sources(self, condition: Condition) -> list[tuple[list[Any], Callable[[Any], list[str]]]]:
        """Index reads whose ids, unioned, are the records matching condition."""
        field_def = self.type_def.get_field_or_raise(condition.field)
        index_key = self.type_def.index_key(field_def)
        op, value = condition.operator, condition.value

        if field_def.index is IndexKind.LEXICAL:
            # Members are "value id", so a range on the value alone over-matches;
            # every member is checked against the condition again.
            compare = _COMPARISONS[op]

            def matching(reply: Any) -> list[str]:
                ids = []
                for member in reply or []:
                    stored, record_id = codec.split_lexical_member(member)
                    if compare(stored, value):
                        ids.append(record_id)
                return ids

            ranges = {
                "=": (f"[{value}", f"({value}!"),
                "!=": ("-", "+"),
                "<": ("-", f"({value}!"),
                "<=": ("-", f"({value}!"),
                ">": (f"[{value}", "+"),
                ">=": (f"[{value}", "+"),
            }
            low, high = ranges[op]
            return [(["ZRANGEBYLEX", index_key, low, high], matching)]

        score = codec.index_score(field_def.index, value)  # type: ignore[arg-type]
        if field_def.index is IndexKind.BOOLEAN:
            if op == "!=":
                score = 1.0 - score
            return [(["ZRANGEBYSCORE", index_key, _score(score), _score(score)], _ids)]

        bounds = {
            "=": [(_score(score), _score(score))],
            "!=": [("-inf", f"({_score(score)}"), (f"({_score(score)}", "+inf")],
            "<": [("-inf", f"({_score(score)}")],
            "<=": [("-inf", _score(score))],
            ">": [(f"({_score(score)}", "+inf")],
            ">=": [(_score(score), "+inf")],
        }
        return [(["ZRANGEBYSCORE", index_key, low, high], _ids) for low, high in bounds[op]]

    def _by_value(self, reply: Any) -> list[str]:
        """Ids from lexical members, ordered by value.

        Member order puts "Alice Smith" before "Alice", since the separator
        sorts below most characters.
        """
        pairs = [codec.split_lexical_member(member) for member in reply or []]
        pairs.sort(reverse=self.descending)
        return [record_id for _, record_id in pairs]

    def _queue_ids(self, tx: Transaction) -> str:
        """Queue the index reads; returns the data key the final ids are published under."""
        prefix = f"{self.type_def.name}:query:{id(self)}"
        result_key = f"{prefix}:ids"
        keys: list[str] = []

        def source(args: list[Any], convert: Callable[[Any], list[str]]) -> str:
            data_key = f"{prefix}:{len(keys)}"
            keys.append(data_key)
            tx.command(args[0], args[1:], publish_handler(tx, data_key, convert))
            return data_key

        matches_key = source(["SMEMBERS", self.type_def.all_key], _ids)
        condition_keys = [
            [source(args, convert) for args, convert in self._condition_sources(condition)]
            for condition in self.conditions
        ]

        order_key = None
        if self.order_field is not None:
            index_key = self.type_def.index_key(self.order_field)
            if self.order_field.index is IndexKind.LEXICAL:
                order_key = source(["ZRANGE", index_key, 0, -1], self._by_value)
            else:
                command = "ZREVRANGE" if self.descending else "ZRANGE"
                order_key = source([command, index_key, 0, -1], _ids)

        def select() -> None:
            matches = set(tx.data.get(matches_key))
            for union_keys in condition_keys:
                matched: set[str] = set()
                for data_key in union_keys:
                    matched.update(tx.data.get(data_key))
                matches &= matched

            if order_key is None:
                ordered = sorted(matches)
            else:
                ordered = [i for i in tx.data.get(order_key) if i in matches]
                # records with no value for the ordering field come last
                seen = set(ordered)
                ordered += sorted(i for i in matches if i not in seen)

            end = None if self.limit_count is None else self.offset_count + self.limit_count
            selected = ordered[self.offset_count:end]
            logger.debug(f"Query on {self.type_def.name} selected {len(selected)} of {len(matches)} id(s)")
            tx.publish(result_key, selected)

        tx.when_ready(keys, select)
        return result_key

    # -- running --------------------------------------------------------

    def ids(self) -> list[str]:
        """Ids of the matching records, in query order."""
        with Transaction(self.registry, self.pool) as tx:
            result_key = self._queue_ids(tx)
            tx.exec()
        return tx.data.get(result_key)

    def count(self) -> int:
        """Number of matching records, after offset and limit."""
        return len(self.ids())

    def run(self) -> list[Any]:
        """Load the matching records, in query order."""
        includes = self._includes()
        records: list[Any] = []
        with Transaction(self.registry, self.pool) as tx:
            result_key = self._queue_ids(tx)

            def load() -> None:
                for record_id in tx.data.get(result_key):
                    records.append(find_by_id(tx, self.type_def.name, record_id, includes))

            tx.when_ready([result_key], load)
            tx.exec()
        return records

    def __repr__(self) -> str:
        return f"Query({self.type_def.name!r}, conditions={self.conditions!r})"
