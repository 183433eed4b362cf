import asyncio

import pytest

from sqlitebruv.builder import BuilderState, QueryBuilder
from sqlitebruv.cache import HotCache
from sqlitebruv.client import SqliteBruv
from sqlitebruv.errors import StateError, ValidationError

from tests.utils import RecordingBackend, user_schema


# --- Fixtures ---


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def db(backend: RecordingBackend) -> SqliteBruv:
    return SqliteBruv([user_schema()], backend=backend, reference=RecordingBackend())


# --- Assembly ---


def test_select_limit(db: SqliteBruv):
    query = db.from_("users").select("*").limit(16).build()
    assert query.sql == "SELECT * FROM users LIMIT 16"
    assert query.params == []


def test_conditions_in_call_order(db: SqliteBruv):
    query = db.from_("users").where("age > ?", 10).and_where("name = ?", "x").build()
    assert query.sql == "SELECT * FROM users WHERE age > ? AND name = ?"
    assert "WHERE age > ? AND name = ?" in query.sql
    assert query.params == [10, "x"]


def test_full_select(db: SqliteBruv):
    query = (
        db.from_("users")
        .select("id", "name")
        .where("age >= ?", 18)
        .or_where("name LIKE ?", "a%")
        .order_by("age", "DESC")
        .limit(10)
        .offset(20)
        .build()
    )
    assert query.sql == (
        "SELECT id, name FROM users WHERE age >= ? OR name LIKE ? "
        "ORDER BY age DESC LIMIT 10 OFFSET 20"
    )
    assert query.params == [18, "a%"]


def test_empty_select_defaults_to_star(db: SqliteBruv):
    assert db.from_("users").select().build().sql == "SELECT * FROM users"


def test_zero_limit_and_offset_are_omitted(db: SqliteBruv):
    assert db.from_("users").limit(0).offset(0).build().sql == "SELECT * FROM users"


def test_last_call_wins(db: SqliteBruv):
    query = db.from_("users").limit(5).limit(7).order_by("age").order_by("name", "desc").build()
    assert query.sql == "SELECT * FROM users ORDER BY name DESC LIMIT 7"


def test_build_without_table():
    with pytest.raises(StateError):
        QueryBuilder().where("age > ?", 1).build()


def test_invalid_limit_and_direction(db: SqliteBruv):
    with pytest.raises(ValidationError):
        db.from_("users").limit(-1)
    with pytest.raises(ValidationError):
        db.from_("users").offset("10")
    with pytest.raises(ValidationError):
        db.from_("users").order_by("age", "SIDEWAYS")


# --- Immutability ---


def test_chaining_does_not_mutate_base(db: SqliteBruv):
    base = db.from_("users")
    adults = base.where("age >= ?", 18)
    minors = base.where("age < ?", 18)

    assert base.state == BuilderState(table_name="users")
    assert adults.build().params == [18]
    assert minors.build().sql == "SELECT * FROM users WHERE age < ?"


@pytest.mark.parametrize("method", ["where", "and_where", "or_where"])
def test_rejected_condition_leaves_state_unchanged(db: SqliteBruv, method: str):
    builder = db.from_("users").where("age > ?", 1)
    before = builder.state

    with pytest.raises(ValidationError):
        getattr(builder, method)("age", 2)
    with pytest.raises(ValidationError):
        getattr(builder, method)("age = ?; DROP TABLE users", 2)
    with pytest.raises(ValidationError):
        getattr(builder, method)("age = ?", [1, 2])

    assert builder.state == before


@pytest.mark.asyncio
async def test_terminal_calls_leave_no_residue(db: SqliteBruv, backend: RecordingBackend):
    builder = db.from_("users").where("age > ?", 1).limit(3)
    await builder.get()
    await db.from_("users").where("age > ?", 1).update({"age": 2})
    await db.from_("users").where("age > ?", 1).delete()
    await db.from_("users").where("age > ?", 1).count()

    # a fresh chain starts from an empty state
    assert db.from_("users").state == BuilderState(table_name="users")
    assert QueryBuilder(db).state == BuilderState()
    assert backend.calls[-1] == (
        "SELECT COUNT(*) as count FROM users WHERE age > ?",
        [1],
        "one",
    )


# --- Terminal operations ---


@pytest.mark.asyncio
async def test_get_and_get_one(db: SqliteBruv, backend: RecordingBackend):
    backend.responses = [[{"id": "a"}, {"id": "b"}], {"id": "a"}]

    rows = await db.from_("users").get()
    row = await db.from_("users").where("id = ?", "a").get_one()

    assert rows == [{"id": "a"}, {"id": "b"}]
    assert row == {"id": "a"}
    assert backend.calls == [
        ("SELECT * FROM users", [], "all"),
        ("SELECT * FROM users WHERE id = ?", ["a"], "one"),
    ]


@pytest.mark.asyncio
async def test_insert_assigns_id(db: SqliteBruv, backend: RecordingBackend):
    row = await db.from_("users").insert({"name": "bruv", "age": 30})

    assert len(row["id"]) == 24
    assert list(row) == ["id", "name", "age"]
    sql, params, mode = backend.calls[0]
    assert sql == "INSERT INTO users (id, name, age) VALUES (?, ?, ?)"
    assert params == [row["id"], "bruv", 30]
    assert mode == "run"


@pytest.mark.asyncio
async def test_insert_keeps_supplied_id(db: SqliteBruv, backend: RecordingBackend):
    row = await db.from_("users").insert({"name": "bruv", "id": "custom"})
    assert row == {"name": "bruv", "id": "custom"}
    assert backend.calls[0][0] == "INSERT INTO users (name, id) VALUES (?, ?)"


@pytest.mark.asyncio
async def test_insert_rejects_bad_values(db: SqliteBruv, backend: RecordingBackend):
    with pytest.raises(ValidationError):
        await db.from_("users").insert({"name": ["not", "a", "param"]})
    with pytest.raises(ValidationError):
        await db.from_("users").insert({"name; DROP TABLE users": "x"})
    assert backend.calls == []


@pytest.mark.asyncio
async def test_update_params_order(db: SqliteBruv, backend: RecordingBackend):
    backend.responses = [{"changes": 1}]
    result = await (
        db.from_("users").where("age > ?", 10).or_where("name = ?", "x").update({"name": "y", "age": 1})
    )

    assert result == {"changes": 1}
    assert backend.calls == [
        ("UPDATE users SET name = ?, age = ? WHERE age > ? OR name = ?", ["y", 1, 10, "x"], "run")
    ]


@pytest.mark.asyncio
async def test_update_and_delete_without_conditions_hit_every_row(
    db: SqliteBruv, backend: RecordingBackend
):
    await db.from_("users").update({"age": 0})
    await db.from_("users").delete()

    assert backend.calls == [
        ("UPDATE users SET age = ?", [0], "run"),
        ("DELETE FROM users", [], "run"),
    ]


@pytest.mark.asyncio
async def test_count(db: SqliteBruv, backend: RecordingBackend):
    backend.responses = [{"count": 4}]
    assert await db.from_("users").where("age > ?", 18).count() == {"count": 4}


@pytest.mark.asyncio
async def test_terminal_without_table_never_reaches_backend(backend: RecordingBackend, db: SqliteBruv):
    builder = QueryBuilder(db)
    with pytest.raises(StateError):
        await builder.get()
    with pytest.raises(StateError):
        await builder.insert({"name": "x"})
    with pytest.raises(StateError):
        await builder.update({"name": "x"})
    with pytest.raises(StateError):
        await builder.delete()
    with pytest.raises(StateError):
        await builder.count()
    assert backend.calls == []


@pytest.mark.asyncio
async def test_unbound_builder_cannot_execute():
    with pytest.raises(StateError):
        await QueryBuilder().from_("users").get()


@pytest.mark.asyncio
async def test_raw(db: SqliteBruv, backend: RecordingBackend):
    backend.responses = [[{"n": 1}]]
    assert await db.raw("SELECT 1 AS n WHERE ? = ?", [1, 1]) == [{"n": 1}]
    assert backend.calls == [("SELECT 1 AS n WHERE ? = ?", [1, 1], "all")]


# --- Cache ---


@pytest.mark.asyncio
async def test_cached_read_is_served_from_cache(db: SqliteBruv, backend: RecordingBackend):
    backend.responses = [[{"id": "a"}], [{"id": "b"}]]

    first = await db.from_("users").cache_as("all-users").get()
    second = await db.from_("users").cache_as("all-users").get()
    assert first == second == [{"id": "a"}]
    assert len(backend.calls) == 1

    db.from_("users").invalidate_cache("all-users")
    third = await db.from_("users").cache_as("all-users").get()
    assert third == [{"id": "b"}]
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_uncached_reads_always_query(db: SqliteBruv, backend: RecordingBackend):
    await db.from_("users").get()
    await db.from_("users").get()
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_cancelled_reader_leaves_shared_read_intact():
    release = asyncio.Event()

    class SlowBackend(RecordingBackend):
        async def execute(self, sql, params=(), mode="all"):
            await release.wait()
            return await super().execute(sql, params, mode)

    backend = SlowBackend([[{"id": "a"}]])
    db = SqliteBruv([user_schema()], backend=backend, reference=RecordingBackend())

    first = asyncio.create_task(db.from_("users").cache_as("u").get())
    await asyncio.sleep(0)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    release.set()
    assert await db.from_("users").cache_as("u").get() == [{"id": "a"}]
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_cancelled_query_is_evicted():
    cache = HotCache()

    async def never():
        await asyncio.Event().wait()

    reader = asyncio.create_task(cache.fetch("k", never))
    await asyncio.sleep(0)
    assert "k" in cache

    cache._entries["k"].cancel()
    with pytest.raises(asyncio.CancelledError):
        await reader
    assert "k" not in cache


@pytest.mark.asyncio
async def test_failed_query_is_evicted():
    cache = HotCache()

    async def boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await cache.fetch("k", boom)
    assert "k" not in cache
    assert await cache.fetch("k", lambda: asyncio.sleep(0, result=1)) == 1
