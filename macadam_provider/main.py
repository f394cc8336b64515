import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from macadam_provider.core.binary import where_binary
from macadam_provider.core.config import Settings, settings
from macadam_provider.routers import connections
from macadam_provider.services.command_runner import CommandRunner
from macadam_provider.services.connection_host import ConnectionHost
from macadam_provider.services.inventory import InventoryReader
from macadam_provider.services.lifecycle import LifecycleOperations
from macadam_provider.services.listeners import ListenerSet
from macadam_provider.services.provider import Provider
from macadam_provider.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

MACADAM_CLI_NAME = "macadam"


def build_reconciler(config: Settings, runner: Optional[CommandRunner] = None) -> Reconciler:
    if runner is None:
        runner = CommandRunner(
            where_binary(MACADAM_CLI_NAME, config.binary_path),
            timeout=config.command_timeout_seconds,
        )
    provider = Provider(MACADAM_CLI_NAME)
    lifecycle = LifecycleOperations(runner, provider, config.resolved_memory_increment_mib())
    return Reconciler(
        reader=InventoryReader(runner),
        host=ConnectionHost(),
        lifecycle=lifecycle,
        provider=provider,
        listeners=ListenerSet(),
        interval=config.poll_interval_seconds,
        aggregate_status_enabled=config.resolved_aggregate_status_enabled(),
        default_username=config.default_username,
        stop_timeout=config.stop_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    reconciler = build_reconciler(settings)
    reconciler.listeners.subscribe(
        lambda name, status: logger.info(f"Machine {name} is now {status.value}")
    )
    app.state.reconciler = reconciler
    app.state.host = reconciler.host
    app.state.lifecycle = reconciler.lifecycle
    app.state.provider = reconciler.provider
    reconciler.start()
    yield
    # Shutdown
    await reconciler.stop()


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(
        title="Macadam Provider",
        description="Lifecycle management for macadam virtual machines",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(connections.router, tags=["connections"])

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "macadam-provider"}

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
