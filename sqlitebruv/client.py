from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Sequence

from loguru import logger

from sqlitebruv.backends import Backend, D1Backend, LocalBackend, TursoBackend
from sqlitebruv.builder import QueryBuilder
from sqlitebruv.cache import HotCache
from sqlitebruv.config import Config
from sqlitebruv.json_query import execute_json_query
from sqlitebruv.migrations import FileMigrationWriter, MigrationManager, MigrationWriter
from sqlitebruv.schema import Schema
from sqlitebruv.types import FetchMode, JsonQuery, Param
from sqlitebruv.validation import ConditionValidator


def create_backend(config: Config) -> Backend:
    if config.d1 is not None:
        return D1Backend(
            config.d1.account_id,
            config.d1.database_id,
            config.d1.api_key,
            base_url=config.d1.base_url,
        )
    if config.turso is not None:
        return TursoBackend(config.turso.url, config.turso.auth_token)
    return LocalBackend(config.db_path)


class SqliteBruv:
    def __init__(
        self,
        schema: Sequence[Schema],
        config: Config | None = None,
        *,
        backend: Backend | None = None,
        reference: Backend | None = None,
        migration_writer: MigrationWriter | None = None,
    ):
        if not schema:
            raise ValueError("No database schema passed!")

        self.config = config or Config()
        self.backend = backend or create_backend(self.config)
        self.reference = reference or LocalBackend()
        self.migration_writer = migration_writer or FileMigrationWriter(
            self.config.migration_folder
        )
        self.cache = HotCache()
        self.validator = ConditionValidator()
        self.verbose = self.config.log_queries
        self.migration_task: asyncio.Task[Path | None] | None = None

        self.schemas = list(schema)
        for s in self.schemas:
            s.db = self

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> SqliteBruv:
        return cls(config.schemas(), config, **kwargs)

    async def initialize(self) -> SqliteBruv:
        """Create declared tables and schedule migration generation"""
        for s in self.schemas:
            await s.induce(self.backend, self.reference)

        manager = MigrationManager(self.backend, self.reference, self.migration_writer)
        self.migration_task = asyncio.create_task(manager.run())
        self.migration_task.add_done_callback(_report_migration)
        return self

    async def close(self):
        if self.migration_task is not None and not self.migration_task.done():
            await asyncio.gather(self.migration_task, return_exceptions=True)
        await self.backend.close()
        await self.reference.close()

    async def __aenter__(self) -> SqliteBruv:
        return await self.initialize()

    async def __aexit__(self, *exc_info):
        await self.close()

    def from_(self, table_name: str) -> QueryBuilder:
        return QueryBuilder(self).from_(table_name)

    def invalidate_cache(self, name: str):
        self.cache.invalidate(name)

    async def raw(self, sql: str, params: Sequence[Param] = ()) -> Any:
        return await QueryBuilder(self).raw(sql, params)

    async def run(self, sql: str, params: Sequence[Param], mode: FetchMode) -> Any:
        if self.verbose:
            logger.info(f"Query: {sql} params={list(params)}")
        return await self.backend.execute(sql, params, mode)

    async def execute_json_query(self, query: JsonQuery) -> Any:
        return await execute_json_query(self, query)


def _report_migration(task: asyncio.Task):
    if task.cancelled():
        return
    if (error := task.exception()) is not None:
        logger.error(f"Migration generation failed: {error}")
