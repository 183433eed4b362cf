from aiohttp import web
import aiohttp_cors
from loguru import logger

from sqlitebruv.client import SqliteBruv
from sqlitebruv.config import Config
from sqlitebruv.handlers.health import HealthCheckHandler
from sqlitebruv.handlers.query import QueryHandler


class BruvServer:
    def __init__(self, config: Config, db: SqliteBruv | None = None):
        self.config = config
        self.db = db or SqliteBruv.from_config(config)
        self.app = web.Application()

    async def setup(self):
        """Set up the server"""
        await self.db.initialize()

        self.app.add_routes(
            [
                web.post("/query", QueryHandler(self.db, self.config.log_queries)),
                web.get("/health", HealthCheckHandler(self.db)),
            ]
        )

        cors = aiohttp_cors.setup(
            self.app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                )
            },
        )
        for route in list(self.app.router.routes()):
            cors.add(route)

        self.app.on_cleanup.append(self._on_cleanup)

    async def _on_cleanup(self, app: web.Application):
        await self.db.close()

    async def start(self):
        """Start the server"""
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()

        logger.opt(colors=True).info(
            f"<e>sqlitebruv server started at http://{self.config.host}:{self.config.port}</e>"
        )
        return runner, site
