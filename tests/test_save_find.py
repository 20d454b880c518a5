"""Tests for saving and finding records."""

import fakeredis
import pytest

from typed_records import Schema
from typed_records.connection import ConnectionPool
from typed_records.errors import ConversionError, NotFoundError, UnregisteredTypeError
from typed_records.graph import find_by_id, save_record

SCHEMA = """
Artist {
    name: string,
    age: int,
    rating: float,
    active: bool,
    tags: string{},
    plays: int[],
}
"""


@pytest.fixture
def server():
    return fakeredis.FakeServer()


@pytest.fixture
def store(server):
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def schema(server):
    pool = ConnectionPool(lambda: fakeredis.FakeRedis(server=server, decode_responses=True))
    return Schema.parse(SCHEMA, pool=pool)


class TestSave:
    """Tests for the commands a save writes."""

    def test_assigns_id(self, schema):
        artist = schema.save(schema.new("Artist", name="Nina"))
        assert len(artist.get_id()) == 32

    def test_keeps_existing_id(self, schema, store):
        artist = schema.new("Artist", name="Nina")
        artist.set_id("nina")
        schema.save(artist)

        assert artist.get_id() == "nina"
        assert store.hgetall("Artist:nina") == {"name": "Nina"}

    def test_writes_hash_and_existence_index(self, schema, store):
        artist = schema.save(schema.new("Artist", name="Nina", age=70, rating=4.5, active=True))

        assert store.hgetall(f"Artist:{artist.id}") == {
            "name": "Nina",
            "age": "70",
            "rating": "4.5",
            "active": "1",
        }
        assert store.smembers("Artist:all") == {artist.id}

    def test_writes_collections(self, schema, store):
        artist = schema.save(schema.new("Artist", tags={"jazz", "soul"}, plays=[3, 1, 3]))

        assert store.smembers(f"Artist:{artist.id}:tags") == {"jazz", "soul"}
        assert store.lrange(f"Artist:{artist.id}:plays", 0, -1) == ["3", "1", "3"]

    def test_resave_replaces_collections(self, schema, store):
        artist = schema.save(schema.new("Artist", plays=[1, 2, 3]))
        artist.plays = [9]
        schema.save(artist)

        assert store.lrange(f"Artist:{artist.id}:plays", 0, -1) == ["9"]

    def test_empty_collection_clears(self, schema, store):
        artist = schema.save(schema.new("Artist", tags={"jazz"}))
        artist.tags = set()
        schema.save(artist)

        assert not store.exists(f"Artist:{artist.id}:tags")

    def test_unset_collection_untouched(self, schema, store):
        artist = schema.save(schema.new("Artist", tags={"jazz"}))
        artist.tags = None
        schema.save(artist)

        assert store.smembers(f"Artist:{artist.id}:tags") == {"jazz"}

    def test_cleared_scalar_removed(self, schema, store):
        artist = schema.save(schema.new("Artist", name="Nina", age=70))
        artist.age = None
        schema.save(artist)

        assert store.hgetall(f"Artist:{artist.id}") == {"name": "Nina"}

    def test_conversion_error_before_network(self, schema, store):
        artist = schema.new("Artist", age="seventy")

        with pytest.raises(ConversionError, match="Artist.age"):
            schema.save(artist)
        assert store.dbsize() == 0
        assert schema.pool.in_use == 0

    def test_bad_collection_before_network(self, schema, store):
        artist = schema.new("Artist", name="Nina", plays=["loud"])

        with pytest.raises(ConversionError, match="Artist.plays"):
            schema.save(artist)
        assert store.dbsize() == 0
        assert artist.get_id() == ""

    def test_unregistered_record(self, schema):
        class Stranger:
            def get_id(self):
                return ""

            def set_id(self, record_id):
                pass

        with pytest.raises(UnregisteredTypeError):
            schema.save(Stranger())

    def test_save_all_one_round_trip(self, schema, store):
        records = [schema.new("Artist", name=n) for n in ("a", "b", "c")]
        schema.save_all(records)

        assert store.scard("Artist:all") == 3


class TestFind:
    """Tests for loading records."""

    def test_round_trip(self, schema):
        saved = schema.save(
            schema.new("Artist", name="Nina", age=70, rating=4.5, active=False, tags={"jazz"}, plays=[2, 1])
        )

        found = schema.find_by_id("Artist", saved.id)

        assert found is not saved
        assert found.id == saved.id
        assert found.name == "Nina"
        assert found.age == 70
        assert found.rating == 4.5
        assert found.active is False
        assert found.tags == {"jazz"}
        assert found.plays == [2, 1]

    def test_not_found(self, schema):
        with pytest.raises(NotFoundError, match="could not find Artist with key Artist:missing"):
            schema.find_by_id("Artist", "missing")

    def test_saved_with_every_field_empty(self, schema):
        saved = schema.save(schema.new("Artist"))

        found = schema.find_by_id("Artist", saved.id)

        assert found.name is None
        assert found.tags == set()
        assert found.plays == []

    def test_unknown_type(self, schema):
        with pytest.raises(UnregisteredTypeError):
            schema.find_by_id("Painter", "x")

    def test_includes(self, schema):
        saved = schema.save(schema.new("Artist", name="Nina", age=70, tags={"jazz"}))

        found = schema.find_by_id("Artist", saved.id, includes=["name", "tags"])

        assert found.name == "Nina"
        assert found.age is None
        assert found.tags == {"jazz"}
        assert found.plays is None

    def test_includes_only_empty_fields(self, schema):
        saved = schema.save(schema.new("Artist", name="Nina"))

        found = schema.find_by_id("Artist", saved.id, includes=["age"])

        assert found.age is None

    def test_includes_missing_record(self, schema):
        with pytest.raises(NotFoundError):
            schema.find_by_id("Artist", "missing", includes=["name"])

    def test_includes_unknown_field(self, schema):
        with pytest.raises(ValueError, match="not found"):
            schema.find_by_id("Artist", "x", includes=["nope"])

    def test_scan_by_id(self, schema):
        saved = schema.save(schema.new("Artist", name="Nina", plays=[1]))

        found = schema.scan_by_id("Artist", saved.id)

        assert found.name == "Nina"
        assert found.plays == [1]

    def test_corrupt_value(self, schema, store):
        saved = schema.save(schema.new("Artist", name="Nina"))
        store.hset(f"Artist:{saved.id}", "age", "old")

        with pytest.raises(ConversionError, match="Artist.age"):
            schema.find_by_id("Artist", saved.id)


class TestSharedTransaction:
    """Tests for batching several operations in one transaction."""

    def test_save_and_find_share_round_trips(self, schema):
        first = schema.save(schema.new("Artist", name="first"))
        second = schema.new("Artist", name="second")

        tx = schema.transaction()
        save_record(tx, second)
        found = find_by_id(tx, "Artist", first.id)
        tx.exec()

        assert found.name == "first"
        assert tx.round_trips == 1

    def test_same_record_found_once(self, schema):
        saved = schema.save(schema.new("Artist", name="Nina"))

        tx = schema.transaction()
        a = find_by_id(tx, "Artist", saved.id)
        b = find_by_id(tx, "Artist", saved.id)
        tx.exec()

        assert a is b
