"""Tests for query scans."""

import fakeredis
import pytest

from typed_records import Schema
from typed_records.connection import ConnectionPool
from typed_records.errors import InvalidQueryError, UnregisteredTypeError

SCHEMA = """
Person {
    name: string indexed,
    age: int indexed,
    score: float indexed,
    active: bool indexed,
    city: string,
    tags: string{},
    friends: -> Person[],
}
"""

PEOPLE = [
    ("alice", "Alice", 34, 7.5, True),
    ("bob", "Bob", 19, 6.0, False),
    ("carol", "Carol", 21, 9.25, True),
    ("dave", "Dave", 45, 3.0, True),
    ("erin", "Alice Smith", 28, None, False),
]


@pytest.fixture
def schema():
    server = fakeredis.FakeServer()
    pool = ConnectionPool(lambda: fakeredis.FakeRedis(server=server, decode_responses=True))
    schema = Schema.parse(SCHEMA, pool=pool)
    records = []
    for record_id, name, age, score, active in PEOPLE:
        person = schema.new("Person", name=name, age=age, score=score, active=active, city="Oslo", tags={"x"})
        person.set_id(record_id)
        records.append(person)
    schema.save_all(records)
    return schema


class TestFilters:
    """Tests for filter conditions."""

    def test_no_filter(self, schema):
        assert schema.query("Person").ids() == ["alice", "bob", "carol", "dave", "erin"]

    def test_numeric_comparisons(self, schema):
        assert schema.query("Person").filter("age = 21").ids() == ["carol"]
        assert schema.query("Person").filter("age > 28").ids() == ["alice", "dave"]
        assert schema.query("Person").filter("age >= 28").ids() == ["alice", "dave", "erin"]
        assert schema.query("Person").filter("age < 21").ids() == ["bob"]
        assert schema.query("Person").filter("age <= 21").ids() == ["bob", "carol"]
        assert schema.query("Person").filter("age != 21").ids() == ["alice", "bob", "dave", "erin"]

    def test_float_field(self, schema):
        assert schema.query("Person").filter("score > 6.5").ids() == ["alice", "carol"]

    def test_missing_value_never_matches(self, schema):
        assert "erin" not in schema.query("Person").filter("score != 1.0").ids()

    def test_boolean(self, schema):
        assert schema.query("Person").filter("active = true").ids() == ["alice", "carol", "dave"]
        assert schema.query("Person").filter("active != true").ids() == ["bob", "erin"]

    def test_lexical_equality(self, schema):
        assert schema.query("Person").filter('name = "Alice"').ids() == ["alice"]

    def test_lexical_non_ascii(self, schema):
        jose = schema.new("Person", name="José", age=40)
        jose.set_id("jose")
        schema.save(jose)

        assert schema.query("Person").filter('name = "José"').ids() == ["jose"]
        assert schema.query("Person").filter('name > "Dave"').ids() == ["jose"]

    def test_lexical_ranges(self, schema):
        assert schema.query("Person").filter('name < "Bob"').ids() == ["alice", "erin"]
        assert schema.query("Person").filter('name <= "Bob"').ids() == ["alice", "bob", "erin"]
        assert schema.query("Person").filter('name > "Bob"').ids() == ["carol", "dave"]
        assert schema.query("Person").filter('name >= "Carol"').ids() == ["carol", "dave"]
        assert schema.query("Person").filter('name != "Alice"').ids() == ["bob", "carol", "dave", "erin"]

    def test_conjunction(self, schema):
        ids = schema.query("Person").filter('age >= 21 and active = true and name != "Dave"').ids()
        assert ids == ["alice", "carol"]

    def test_filters_accumulate(self, schema):
        ids = schema.query("Person").filter("age > 20").filter("active = false").ids()
        assert ids == ["erin"]

    def test_reflects_resave(self, schema):
        bob = schema.find_by_id("Person", "bob")
        bob.age = 50
        schema.save(bob)

        assert schema.query("Person").filter("age > 40").ids() == ["bob", "dave"]


class TestOrdering:
    """Tests for ordering, offset and limit."""

    def test_numeric_order(self, schema):
        assert schema.query("Person").order("age").ids() == ["bob", "carol", "erin", "alice", "dave"]

    def test_descending(self, schema):
        assert schema.query("Person").order("-age").ids() == ["dave", "alice", "erin", "carol", "bob"]

    def test_lexical_order(self, schema):
        assert schema.query("Person").order("name").ids() == ["alice", "erin", "bob", "carol", "dave"]

    def test_missing_values_last(self, schema):
        assert schema.query("Person").order("-score").ids() == ["carol", "alice", "bob", "dave", "erin"]

    def test_offset_and_limit(self, schema):
        query = schema.query("Person").order("age").offset(1).limit(2)
        assert query.ids() == ["carol", "erin"]

    def test_count(self, schema):
        assert schema.query("Person").count() == 5
        assert schema.query("Person").filter("active = true").limit(2).count() == 2


class TestRun:
    """Tests for loading query results."""

    def test_run_loads_records(self, schema):
        people = schema.query("Person").filter("age < 22").order("age").run()

        assert [p.name for p in people] == ["Bob", "Carol"]
        assert people[0].city == "Oslo"
        assert people[0].tags == {"x"}

    def test_include(self, schema):
        (person,) = schema.query("Person").filter('name = "Bob"').include("name", "age").run()

        assert (person.name, person.age) == ("Bob", 19)
        assert person.city is None
        assert person.tags is None

    def test_exclude(self, schema):
        (person,) = schema.query("Person").filter('name = "Bob"').exclude("tags", "city").run()

        assert person.name == "Bob"
        assert person.tags is None
        assert person.city is None

    def test_empty_result(self, schema):
        assert schema.query("Person").filter("age > 100").run() == []


class TestInvalidQueries:
    """Tests for queries that cannot be served by the indexes."""

    def test_unindexed_filter(self, schema):
        with pytest.raises(InvalidQueryError, match="not indexed"):
            schema.query("Person").filter('city = "Oslo"')

    def test_unknown_field(self, schema):
        with pytest.raises(InvalidQueryError, match="no field"):
            schema.query("Person").filter("height > 3")

    def test_unindexed_order(self, schema):
        with pytest.raises(InvalidQueryError):
            schema.query("Person").order("city")

    def test_value_kind_mismatch(self, schema):
        with pytest.raises(InvalidQueryError):
            schema.query("Person").filter('age = "old"')
        with pytest.raises(InvalidQueryError):
            schema.query("Person").filter("name = 3")
        with pytest.raises(InvalidQueryError):
            schema.query("Person").filter("active = 1")

    def test_boolean_range(self, schema):
        with pytest.raises(InvalidQueryError, match="only supports"):
            schema.query("Person").filter("active > false")

    def test_negative_limit(self, schema):
        with pytest.raises(InvalidQueryError):
            schema.query("Person").limit(-1)

    def test_unknown_type(self, schema):
        with pytest.raises(UnregisteredTypeError):
            schema.query("Robot")

    def test_syntax_error(self, schema):
        with pytest.raises(SyntaxError):
            schema.query("Person").filter("age >")
