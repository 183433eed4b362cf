from abc import ABC, abstractmethod
from typing import Any, Sequence

from sqlitebruv.types import FetchMode, Param, TableDDL

SCHEMA_QUERY = "SELECT name, sql FROM sqlite_master WHERE type='table' ORDER BY name"


class Backend(ABC):
    """A SQL execution provider speaking the SQLite dialect."""

    name: str = "backend"

    @abstractmethod
    async def execute(
        self, sql: str, params: Sequence[Param] = (), mode: FetchMode = "all"
    ) -> Any:
        """Run a statement.

        `one` returns the first row (or None), `all` returns a list of rows and
        `run` returns a `RunResult`. Rows are dicts keyed by column name.
        Provider failures raise `BackendError`.
        """

    async def close(self):
        pass

    async def ping(self) -> bool:
        row = await self.execute("SELECT 1 AS ok", mode="one")
        return bool(row and row.get("ok") == 1)

    async def get_schema(self) -> list[TableDDL]:
        rows = await self.execute(SCHEMA_QUERY, mode="all")
        return [
            {"name": row["name"], "sql": row["sql"]}
            for row in rows
            if row.get("sql") and not row["name"].startswith("sqlite_")
        ]
