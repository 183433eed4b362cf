import sqlite3
from pathlib import Path
from typing import Any, Sequence

import aiosqlite

from sqlitebruv.backends.base import Backend
from sqlitebruv.errors import BackendError
from sqlitebruv.types import FetchMode, Param, RunResult

MEMORY = ":memory:"


class LocalBackend(Backend):
    name = "local"

    def __init__(self, db_path: str | Path = MEMORY):
        self.db_path = db_path if db_path == MEMORY else Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def get_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def execute(
        self, sql: str, params: Sequence[Param] = (), mode: FetchMode = "all"
    ) -> Any:
        conn = await self.get_connection()
        try:
            async with conn.execute(sql, tuple(params)) as cursor:
                if mode == "one":
                    row = await cursor.fetchone()
                    result = dict(row) if row is not None else None
                elif mode == "all":
                    result = [dict(row) for row in await cursor.fetchall()]
                else:
                    result = RunResult(changes=cursor.rowcount)
            if conn.in_transaction:
                await conn.commit()
        except sqlite3.Error as e:
            if conn.in_transaction:
                await conn.rollback()
            raise BackendError(str(e)) from e
        return result

    async def close(self):
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
