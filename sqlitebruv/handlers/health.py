from aiohttp import web
from loguru import logger

from sqlitebruv.handlers import RequestHandler


class HealthCheckHandler(RequestHandler[None]):
    description = "health check"

    async def validate_request(self, request: web.Request) -> None:
        return None

    async def handle(self, request: web.Request) -> web.Response:
        try:
            healthy = await self.db.backend.ping()
        except Exception as e:
            logger.exception("Health check failed")
            return self.response_ok({"status": "unhealthy", "error": str(e)}, status=500)
        if not healthy:
            return self.response_ok({"status": "unhealthy"}, status=500)
        return self.response_ok({"status": "healthy"})
