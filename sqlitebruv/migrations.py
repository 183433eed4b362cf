import asyncio
from datetime import datetime
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os
from loguru import logger

from sqlitebruv.backends import Backend
from sqlitebruv.diff import generate_migration
from sqlitebruv.errors import MigrationError
from sqlitebruv.types import Migration


def format_migration(migration: Migration) -> str:
    return f"-- Up\n\n{migration['up']}\n\n-- Down\n\n{migration['down']}"


def migration_filename(now: datetime | None = None) -> str:
    now = now or datetime.now()
    components = now.strftime("%a %b %d %Y %H:%M:%S").split(" ")
    return f"{'_'.join(components)}_auto_migration.sql"


class MigrationWriter(Protocol):
    async def write(self, migration: Migration) -> Path | None: ...


class FileMigrationWriter:
    def __init__(self, folder: str | Path):
        self.folder = Path(folder)

    async def is_duplicate(self, content: str) -> bool:
        """Whether any existing migration file already holds this content"""
        for name in sorted(await aiofiles.os.listdir(self.folder)):
            path = self.folder / name
            if not await aiofiles.os.path.isfile(path):
                continue
            async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
                if (await f.read()).strip() == content.strip():
                    return True
        return False

    async def write(self, migration: Migration) -> Path | None:
        if not migration["up"]:
            return None

        content = format_migration(migration)
        path = self.folder / migration_filename()
        try:
            await aiofiles.os.makedirs(self.folder, exist_ok=True)
            if await self.is_duplicate(content):
                logger.debug(f"Migration already recorded in {self.folder}, skipping")
                return None
            async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise MigrationError(f"Failed to write migration file {path}: {e}") from e

        logger.info(f"Created migration file: {path.name}")
        return path


class MigrationManager:
    def __init__(self, backend: Backend, reference: Backend, writer: MigrationWriter):
        self.backend = backend
        self.reference = reference
        self.writer = writer

    async def generate(self) -> Migration:
        """Diff the live catalog against the declared tables on the reference handle"""
        current_schema, target_schema = await asyncio.gather(
            self.backend.get_schema(), self.reference.get_schema()
        )
        try:
            return generate_migration(current_schema, target_schema)
        except ValueError as e:
            raise MigrationError(f"Unable to diff schemas: {e}") from e

    async def run(self) -> Path | None:
        try:
            migration = await self.generate()
            return await self.writer.write(migration)
        finally:
            await self.reference.close()
