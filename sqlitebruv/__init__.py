from sqlitebruv.builder import BuilderState, CompiledQuery, QueryBuilder
from sqlitebruv.client import SqliteBruv
from sqlitebruv.config import Config, D1Config, TursoConfig
from sqlitebruv.diff import generate_migration, parse_columns
from sqlitebruv.errors import (
    BackendError,
    BruvError,
    MigrationError,
    StateError,
    ValidationError,
)
from sqlitebruv.ids import new_id
from sqlitebruv.schema import ColumnOptions, Schema

__all__ = [
    "BuilderState",
    "CompiledQuery",
    "QueryBuilder",
    "SqliteBruv",
    "Config",
    "D1Config",
    "TursoConfig",
    "generate_migration",
    "parse_columns",
    "BackendError",
    "BruvError",
    "MigrationError",
    "StateError",
    "ValidationError",
    "new_id",
    "ColumnOptions",
    "Schema",
]
