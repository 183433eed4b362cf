import asyncio
import signal
from loguru import logger
from typer import Typer, Option, echo

from sqlitebruv.client import SqliteBruv
from sqlitebruv.config import Config
from sqlitebruv.errors import MigrationError
from sqlitebruv.server import BruvServer


server_app = Typer()
migration_app = Typer()

app = Typer()
app.add_typer(server_app, name="server")
app.add_typer(migration_app, name="migrate")


async def serve(config: Config, stop: asyncio.Event):
    """Serve until `stop` is set, then release the database"""
    server = BruvServer(config)
    await server.setup()
    runner, _ = await server.start()
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down...")
        await runner.cleanup()


async def _run_server(config_path: str):
    config = Config.from_file(config_path)
    stop = asyncio.Event()

    def on_signal(sig: signal.Signals):
        logger.info(f"Received exit signal {sig.name}")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGHUP, signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, on_signal, sig)

    await serve(config, stop)


async def _generate_migration(config_path: str):
    config = Config.from_file(config_path)
    async with SqliteBruv.from_config(config) as db:
        if db.migration_task is None:
            raise MigrationError("Database initialised without scheduling a migration")
        path = await db.migration_task

    if path is None:
        echo("No schema changes")
    else:
        echo(f"Wrote {path}")


@server_app.command()
def run(config: str = Option(..., "--config", "-c")):
    asyncio.run(_run_server(config))


@migration_app.command()
def generate(config: str = Option(..., "--config", "-c")):
    asyncio.run(_generate_migration(config))


if __name__ == "__main__":
    app()
