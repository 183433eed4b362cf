from typing import Any

import orjson
from aiohttp import web
from loguru import logger

from sqlitebruv.errors import BackendError, RequestValidationError, StateError, ValidationError
from sqlitebruv.handlers import RequestHandler


class QueryHandler(RequestHandler[dict[str, Any]]):
    description = "execute query"

    async def validate_request(self, request: web.Request) -> dict[str, Any]:
        body = await request.read()
        try:
            query = orjson.loads(body)
        except orjson.JSONDecodeError:
            raise RequestValidationError("Request body must be valid JSON")

        if not isinstance(query, dict):
            raise RequestValidationError("Request body must be a JSON object")
        if "from" not in query:
            raise RequestValidationError("Missing required field 'from'")
        if "action" not in query:
            raise RequestValidationError("Missing required field 'action'")
        return query

    async def handle(self, request: web.Request) -> web.Response:
        query = request["validated_data"]
        if self.verbose:
            logger.info(f"JSON query action={query['action']} from={query['from']}")

        try:
            result = await self.db.execute_json_query(query)
        except (ValidationError, StateError) as e:
            return self.response_fail(str(e), status=400)
        except BackendError as e:
            logger.warning(f"Backend rejected query: {e}")
            return self.response_fail(str(e), status=502)
        except Exception as e:
            logger.exception("Error executing query")
            return self.response_fail(str(e), status=500)

        return self.response_ok({"result": result})
