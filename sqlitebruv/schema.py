from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, get_args

from loguru import logger

from sqlitebruv.types import ColumnType, RelationType

if TYPE_CHECKING:
    from sqlitebruv.backends import Backend
    from sqlitebruv.builder import QueryBuilder
    from sqlitebruv.client import SqliteBruv

PRIMARY_KEY_COLUMN = "id text PRIMARY KEY NOT NULL"

COLUMN_TYPES = set(get_args(ColumnType))
RELATION_TYPES = set(get_args(RelationType))


@dataclass(frozen=True)
class ColumnOptions:
    type: ColumnType
    required: bool = False
    unique: bool = False
    default: Callable[[], Any] | None = None
    target: str | None = None
    relation_type: RelationType | None = None

    def __post_init__(self):
        if self.type not in COLUMN_TYPES:
            raise ValueError(
                f"Invalid column type: {self.type}. Allowed: {', '.join(sorted(COLUMN_TYPES))}"
            )
        if self.relation_type is not None and self.relation_type not in RELATION_TYPES:
            raise ValueError(f"Invalid relation type: {self.relation_type}")
        if self.default is not None and not callable(self.default):
            # plain values from configuration files become constant expressions
            value = self.default
            object.__setattr__(self, "default", lambda: value)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnOptions:
        data = dict(data)
        if "relationType" in data:
            data["relation_type"] = data.pop("relationType")
        return cls(**data)

    def to_sql(self) -> str:
        parts = [self.type]
        if self.unique:
            parts.append("UNIQUE")
        if self.required:
            parts.append("NOT NULL")
        if self.default is not None:
            parts.append(f"DEFAULT {self.default()}")
        return " ".join(parts)


class Schema:
    """A declared table.

    The `id` text primary key is implicit and always rendered first; `columns`
    keeps declaration order.
    """

    def __init__(self, name: str, columns: dict[str, ColumnOptions | dict[str, Any]]):
        if not name:
            raise ValueError("Schema name must not be empty")
        if "id" in columns:
            raise ValueError(f"Schema '{name}' must not declare the implicit 'id' column")
        self.name = name
        self.columns: dict[str, ColumnOptions] = {
            col: opts if isinstance(opts, ColumnOptions) else ColumnOptions.from_dict(opts)
            for col, opts in columns.items()
        }
        self.db: SqliteBruv | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        return cls(data["name"], data.get("columns") or {})

    def __repr__(self) -> str:
        return f"Schema(name={self.name!r}, columns={list(self.columns)!r})"

    def to_sql(self) -> str:
        columns = [PRIMARY_KEY_COLUMN] + [
            f"{col} {opts.to_sql()}" for col, opts in self.columns.items()
        ]
        return f"CREATE TABLE IF NOT EXISTS {self.name} ({', '.join(columns)})"

    def __str__(self) -> str:
        return self.to_sql()

    @property
    def query(self) -> QueryBuilder:
        if self.db is None:
            raise RuntimeError(f"Schema '{self.name}' is not attached to a database")
        return self.db.from_(self.name)

    async def query_raw(self, sql: str, params: list | tuple = ()) -> Any:
        return await self.query.raw(sql, params)

    async def induce(self, backend: Backend, reference: Backend | None = None):
        """Create the table on the database and on the reference handle used for diffing"""
        sql = self.to_sql()
        for target in (backend, reference):
            if target is None:
                continue
            try:
                await target.execute(sql, mode="run")
            except Exception as e:
                logger.error(f"Failed to induce schema '{self.name}' on {target.name}: {e}\n{sql}")
