"""Example usage of the typed_records library.

Needs a Redis server; set TYPED_RECORDS_REDIS_HOST / _PORT (or a .env file)
when it is not on localhost:6379.
"""

from typed_records import Schema

# Define record types using the DSL
types = """
Color { r: int, g: int, b: int }

Person {
    name: string indexed
    age: int indexed
    favorite_color: -> Color
    nicknames: string[]
    friends: -> Person[]
}
"""

with Schema.parse(types) as schema:
    teal = schema.save(schema.new("Color", r=0, g=128, b=128))

    people = [
        ("Alice", 30, ["Al"]),
        ("Bob", 25, []),
        ("Charlie", 35, ["Chuck", "Chaz"]),
        ("Diana", 28, ["Di"]),
    ]

    print("Saving Person records...")
    saved = schema.save_all(
        schema.new("Person", name=name, age=age, nicknames=nicknames, favorite_color=teal)
        for name, age, nicknames in people
    )
    for person in saved:
        print(f"  Saved: {person.name} as Person:{person.id}")

    # Relationships point at records that already have ids
    alice, bob = saved[0], saved[1]
    alice.friends = [bob]
    bob.friends = [alice]
    schema.save_all([alice, bob])

    print("\nLoading Alice with everything she relates to:")
    found = schema.find_by_id("Person", alice.id)
    print(f"  {found.name}, age {found.age}, nicknames {found.nicknames}")
    print(f"  favorite color: {found.favorite_color.r}, {found.favorite_color.g}, {found.favorite_color.b}")
    print(f"  friend: {found.friends[0].name}, whose friend is Alice again: {found.friends[0].friends[0] is found}")

    print("\nPeople aged 28 or more, oldest first:")
    for person in schema.query("Person").filter("age >= 28").order("-age").include("name", "age").run():
        print(f"  {person.name} ({person.age})")

    print("\nCleaning up...")
    for person in saved:
        schema.delete(person)
    schema.delete(teal)
