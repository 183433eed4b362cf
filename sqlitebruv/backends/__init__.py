from sqlitebruv.backends.base import Backend
from sqlitebruv.backends.http import D1Backend, TursoBackend
from sqlitebruv.backends.local import LocalBackend, MEMORY

__all__ = ["Backend", "D1Backend", "TursoBackend", "LocalBackend", "MEMORY"]
