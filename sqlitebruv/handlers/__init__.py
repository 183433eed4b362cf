from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import orjson
from aiohttp import web
from loguru import logger

from sqlitebruv.client import SqliteBruv
from sqlitebruv.errors import RequestValidationError

T = TypeVar("T")


class RequestHandler(ABC, Generic[T]):
    description: str = ""

    def __init__(self, db: SqliteBruv, verbose: bool = False):
        self.db = db
        self.verbose = verbose

    @abstractmethod
    async def validate_request(self, request: web.Request) -> T: ...

    @abstractmethod
    async def handle(self, request: web.Request) -> web.Response: ...

    async def __call__(self, request: web.Request) -> web.Response:
        try:
            request["validated_data"] = await self.validate_request(request)
        except RequestValidationError as e:
            logger.warning(f"Rejected request to {self.description}: {e}")
            return self.response_fail(str(e), status=400)
        return await self.handle(request)

    @staticmethod
    def response_ok(payload: Any, status: int = 200) -> web.Response:
        return web.Response(
            status=status,
            body=orjson.dumps(payload, default=str),
            content_type="application/json",
        )

    @staticmethod
    def response_fail(message: str, status: int = 400) -> web.Response:
        return web.Response(
            status=status,
            body=orjson.dumps({"error": message}),
            content_type="application/json",
        )
