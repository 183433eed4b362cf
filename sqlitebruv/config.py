from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from sqlitebruv.backends.http import D1_BASE_URL
from sqlitebruv.schema import Schema


@dataclass
class D1Config:
    account_id: str
    database_id: str
    api_key: str
    base_url: str = D1_BASE_URL

    def __post_init__(self):
        for name in ("account_id", "database_id", "api_key"):
            if not getattr(self, name):
                raise ValueError(f"d1.{name} is required")


@dataclass
class TursoConfig:
    url: str
    auth_token: str

    def __post_init__(self):
        if not self.url:
            raise ValueError("turso.url is required")
        if not self.auth_token:
            raise ValueError("turso.auth_token is required")


@dataclass
class Config:
    name: str = "Database"
    sqlite_dir: Path = field(default_factory=lambda: Path("."))
    migration_folder: Path = field(default_factory=lambda: Path("./Bruv-migrations"))
    log_queries: bool = False
    d1: D1Config | None = None
    turso: TursoConfig | None = None
    host: str = "127.0.0.1"
    port: int = 7799
    tables: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        self.sqlite_dir = Path(self.sqlite_dir)
        self.migration_folder = Path(self.migration_folder)
        if isinstance(self.d1, dict):
            self.d1 = D1Config(**self.d1)
        if isinstance(self.turso, dict):
            self.turso = TursoConfig(**self.turso)

        if not self.name:
            raise ValueError("'name' must not be empty")
        if self.d1 is not None and self.turso is not None:
            raise ValueError("Only one remote backend may be configured: 'd1' or 'turso'")
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")

    @property
    def db_path(self) -> Path:
        return self.sqlite_dir / f"{self.name}.sqlite"

    def schemas(self) -> list[Schema]:
        return [Schema.from_dict(table) for table in self.tables]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)
