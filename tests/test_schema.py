import pytest
import pytest_asyncio
from typing import AsyncIterator

from sqlitebruv.backends import LocalBackend
from sqlitebruv.schema import ColumnOptions, Schema

from tests.utils import RecordingBackend, user_schema


@pytest_asyncio.fixture
async def memory_backend() -> AsyncIterator[LocalBackend]:
    backend = LocalBackend()
    yield backend
    await backend.close()


def test_single_column_ddl():
    schema = Schema.from_dict(
        {"name": "users", "columns": {"name": {"type": "TEXT", "required": True}}}
    )
    assert schema.to_sql() == (
        "CREATE TABLE IF NOT EXISTS users (id text PRIMARY KEY NOT NULL, name TEXT NOT NULL)"
    )


def test_ddl_keeps_declaration_order_and_modifiers():
    assert user_schema().to_sql() == (
        "CREATE TABLE IF NOT EXISTS users ("
        "id text PRIMARY KEY NOT NULL, "
        "name TEXT NOT NULL, "
        "username TEXT UNIQUE NOT NULL, "
        "age INTEGER NOT NULL, "
        "createdAt DATETIME DEFAULT CURRENT_TIMESTAMP)"
    )


def test_plain_default_value_is_wrapped():
    column = ColumnOptions.from_dict({"type": "INTEGER", "default": 0})
    assert column.to_sql() == "INTEGER DEFAULT 0"


def test_relation_metadata_is_stored():
    column = ColumnOptions.from_dict(
        {"type": "TEXT", "target": "users", "relationType": "ONE"}
    )
    assert column.target == "users"
    assert column.relation_type == "ONE"
    assert column.to_sql() == "TEXT"


def test_invalid_declarations():
    with pytest.raises(ValueError):
        ColumnOptions(type="BLOB")
    with pytest.raises(ValueError):
        ColumnOptions(type="TEXT", relation_type="SOME")
    with pytest.raises(ValueError):
        Schema("users", {"id": ColumnOptions(type="TEXT")})
    with pytest.raises(ValueError):
        Schema("", {})


def test_query_requires_attached_database():
    with pytest.raises(RuntimeError):
        user_schema().query


@pytest.mark.asyncio
async def test_induce_creates_table_on_both_handles(memory_backend: LocalBackend):
    reference = LocalBackend()
    schema = user_schema()
    await schema.induce(memory_backend, reference)

    for backend in (memory_backend, reference):
        tables = await backend.get_schema()
        assert [t["name"] for t in tables] == ["users"]
        assert tables[0]["sql"].startswith("CREATE TABLE users (")
    await reference.close()


@pytest.mark.asyncio
async def test_induce_failure_is_not_fatal(memory_backend: LocalBackend):
    recording = RecordingBackend()
    broken = Schema("users", {"age": ColumnOptions(type="INTEGER", default=lambda: "(")})

    await broken.induce(memory_backend, recording)

    # the reference handle still received the statement
    assert recording.calls[0][0] == broken.to_sql()
    assert await memory_backend.get_schema() == []
