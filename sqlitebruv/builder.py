from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, NamedTuple, Protocol, Sequence

from loguru import logger

from sqlitebruv.cache import HotCache
from sqlitebruv.errors import StateError, ValidationError
from sqlitebruv.ids import new_id
from sqlitebruv.types import Direction, FetchMode, OrderBy, Param, Row, RunResult
from sqlitebruv.validation import ConditionValidator, validate_identifier


class Executor(Protocol):
    cache: HotCache
    validator: ConditionValidator

    async def run(self, sql: str, params: Sequence[Param], mode: FetchMode) -> Any: ...


class CompiledQuery(NamedTuple):
    sql: str
    params: list[Param]


@dataclass(frozen=True)
class BuilderState:
    table_name: str | None = None
    columns: tuple[str, ...] = ("*",)
    conditions: tuple[str, ...] = ()
    params: tuple[Param, ...] = ()
    limit: int | None = None
    offset: int | None = None
    order_by: OrderBy | None = None
    cache_key: str | None = None


class QueryBuilder:
    """Fluent, immutable description of a single query.

    Every chaining call returns a new builder, so a builder can be kept as a
    base and extended by several queries without one leaking conditions into
    another. I/O only happens in the terminal calls (`get`, `get_one`,
    `insert`, `update`, `delete`, `count`, `raw`).
    """

    def __init__(
        self,
        executor: Executor | None = None,
        state: BuilderState | None = None,
        validator: ConditionValidator | None = None,
    ):
        self._executor = executor
        self.state = state or BuilderState()
        if validator is None:
            validator = executor.validator if executor is not None else ConditionValidator()
        self._validator = validator

    def __repr__(self) -> str:
        return f"QueryBuilder({self.state!r})"

    def _replace(self, **changes: Any) -> QueryBuilder:
        return QueryBuilder(self._executor, replace(self.state, **changes), self._validator)

    def from_(self, table_name: str) -> QueryBuilder:
        return self._replace(table_name=table_name)

    def select(self, *columns: str) -> QueryBuilder:
        return self._replace(columns=tuple(columns) or ("*",))

    def _add_condition(self, keyword: str, condition: str, params: tuple[Param, ...]):
        self._validator.validate(condition, params)
        return self._replace(
            conditions=self.state.conditions + (f"{keyword} {condition}",),
            params=self.state.params + params,
        )

    def where(self, condition: str, *params: Param) -> QueryBuilder:
        return self._add_condition("WHERE", condition, params)

    def and_where(self, condition: str, *params: Param) -> QueryBuilder:
        return self._add_condition("AND", condition, params)

    def or_where(self, condition: str, *params: Param) -> QueryBuilder:
        return self._add_condition("OR", condition, params)

    def limit(self, count: int) -> QueryBuilder:
        return self._replace(limit=_non_negative_int(count, "limit"))

    def offset(self, count: int) -> QueryBuilder:
        return self._replace(offset=_non_negative_int(count, "offset"))

    def order_by(self, column: str, direction: Direction = "ASC") -> QueryBuilder:
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise ValidationError(f"Invalid order direction: {direction}. Use ASC or DESC")
        return self._replace(order_by=OrderBy(column=column, direction=direction))

    def cache_as(self, name: str) -> QueryBuilder:
        return self._replace(cache_key=name)

    def invalidate_cache(self, name: str) -> QueryBuilder:
        self._require_executor().cache.invalidate(name)
        return self

    def _require_table(self) -> str:
        if not self.state.table_name or not isinstance(self.state.table_name, str):
            raise StateError("No table selected!")
        return self.state.table_name

    def _require_executor(self) -> Executor:
        if self._executor is None:
            raise StateError("Query builder is not bound to a database")
        return self._executor

    def _where_clause(self) -> str:
        return " ".join(self.state.conditions)

    def build(self) -> CompiledQuery:
        table = self._require_table()
        state = self.state
        segments = [
            f"SELECT {', '.join(state.columns)} FROM {table}",
            *state.conditions,
            f"ORDER BY {state.order_by['column']} {state.order_by['direction']}"
            if state.order_by
            else "",
            f"LIMIT {state.limit}" if state.limit else "",
            f"OFFSET {state.offset}" if state.offset else "",
        ]
        return CompiledQuery(" ".join(s for s in segments if s), list(state.params))

    async def _read(self, query: CompiledQuery, mode: FetchMode) -> Any:
        executor = self._require_executor()
        if self.state.cache_key:
            return await executor.cache.fetch(
                self.state.cache_key, lambda: executor.run(query.sql, query.params, mode)
            )
        return await executor.run(query.sql, query.params, mode)

    async def get(self) -> list[Row]:
        return await self._read(self.build(), "all")

    async def get_one(self) -> Row | None:
        return await self._read(self.build(), "one")

    async def raw(self, sql: str, params: Sequence[Param] = ()) -> Any:
        self._validator.check_param_types(params)
        return await self._read(CompiledQuery(sql, list(params)), "all")

    def _row_values(self, data: Mapping[str, Any], action: str) -> list[Param]:
        if not data:
            raise ValidationError(f"{action} requires at least one column value")
        for column in data:
            validate_identifier(column)
        values = list(data.values())
        self._validator.check_param_types(values)
        return values

    async def insert(self, data: Mapping[str, Param]) -> Row:
        """Insert one row, assigning an `id` when none is given, and return it"""
        table = self._require_table()
        row: Row = dict(data)
        if row.get("id") is None:
            row = {"id": new_id(), **{k: v for k, v in row.items() if k != "id"}}
        values = self._row_values(row, "insert")

        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
        await self._require_executor().run(sql, values, "run")
        return row

    async def update(self, data: Mapping[str, Param]) -> RunResult:
        """Update matching rows.

        Without any condition every row of the table is updated.
        """
        table = self._require_table()
        values = self._row_values(data, "update")
        if not self.state.conditions:
            logger.warning(f"UPDATE on '{table}' without conditions affects every row")

        assignments = ", ".join(f"{column} = ?" for column in data)
        sql = " ".join(s for s in (f"UPDATE {table} SET {assignments}", self._where_clause()) if s)
        params = values + list(self.state.params)
        return await self._require_executor().run(sql, params, "run")

    async def delete(self) -> RunResult:
        """Delete matching rows. Without any condition the whole table is emptied."""
        table = self._require_table()
        if not self.state.conditions:
            logger.warning(f"DELETE on '{table}' without conditions affects every row")

        sql = " ".join(s for s in (f"DELETE FROM {table}", self._where_clause()) if s)
        return await self._require_executor().run(sql, list(self.state.params), "run")

    async def count(self) -> dict[str, int]:
        table = self._require_table()
        sql = " ".join(
            s for s in (f"SELECT COUNT(*) as count FROM {table}", self._where_clause()) if s
        )
        row = await self._require_executor().run(sql, list(self.state.params), "one")
        return {"count": int((row or {}).get("count") or 0)}


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"'{name}' must be a non-negative integer, got {value!r}")
    return value
