import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kgprox.errors import RebuildError

from .routers import relationships_api
from .service_factory import close_service, get_manager

logging.basicConfig(format="%(levelname)s:     %(asctime)s - %(message)s", level=logging.INFO, datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the first snapshot on startup and stops rebuilds on shutdown.
    """
    try:
        get_manager().rebuild()
    except RebuildError as e:
        # Serve 503s until a later rebuild succeeds rather than refusing to start.
        logger.error("Initial snapshot build failed: %s", e)
    yield
    close_service()


def create_app(build_on_startup: bool = True) -> FastAPI:
    app = FastAPI(
        title="kgprox Relationship API",
        description="Read-only API serving facts ranked by proximity to the principal entity.",
        version="0.1.0",
        lifespan=lifespan if build_on_startup else None,
    )
    app.include_router(relationships_api.router)

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint reporting whether a snapshot is being served.
        """
        snapshot = get_manager().handle.current()
        return {
            "status": "ok",
            "snapshot_version": snapshot.version if snapshot is not None else None,
            "rebuilding": get_manager().is_rebuilding,
        }

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn (``kgprox-server``)."""
    import uvicorn

    host = os.environ.get("KGPROX_HOST", "0.0.0.0")
    port = int(os.environ.get("KGPROX_PORT", "8000"))
    uvicorn.run("kgproxserver.server:app", host=host, port=port)
