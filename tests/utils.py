from typing import Any, Sequence

from sqlitebruv.backends import Backend
from sqlitebruv.client import SqliteBruv
from sqlitebruv.schema import ColumnOptions, Schema
from sqlitebruv.types import FetchMode, Param


def user_schema() -> Schema:
    return Schema(
        "users",
        {
            "name": ColumnOptions(type="TEXT", required=True),
            "username": ColumnOptions(type="TEXT", required=True, unique=True),
            "age": ColumnOptions(type="INTEGER", required=True),
            "createdAt": ColumnOptions(
                type="DATETIME", default=lambda: "CURRENT_TIMESTAMP"
            ),
        },
    )


class RecordingBackend(Backend):
    """Remembers every statement and answers with queued responses."""

    name = "recording"

    def __init__(self, responses: list[Any] | None = None):
        self.calls: list[tuple[str, list[Param], FetchMode]] = []
        self.responses = list(responses or [])
        self.closed = False

    async def execute(
        self, sql: str, params: Sequence[Param] = (), mode: FetchMode = "all"
    ) -> Any:
        self.calls.append((sql, list(params), mode))
        if self.responses:
            return self.responses.pop(0)
        if mode == "all":
            return []
        if mode == "one":
            return None
        return {"changes": 0}

    async def close(self):
        self.closed = True


async def seed_users(db: SqliteBruv, ages: Sequence[int]) -> list[dict]:
    rows = []
    for idx, age in enumerate(ages):
        rows.append(
            await db.from_("users").insert(
                {"name": f"user {idx}", "username": f"user_{idx}", "age": age}
            )
        )
    return rows
