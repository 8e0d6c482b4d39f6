"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tiktrack.api.routes import accounts, refresh as refresh_routes
from tiktrack.db.engine import get_engine
from tiktrack.refresh.ledger import StatusLedger

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Honour test overrides so startup never touches the real database
        engine = app.dependency_overrides.get(get_engine, get_engine)()
        if not StatusLedger(engine).ensure_bootstrap():
            logger.warning("Refresh ledger unavailable; staleness will read as always due")
        yield

    app = FastAPI(
        title="tiktrack API",
        description="Tracked TikTok profile cache and batch refresh",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
    app.include_router(refresh_routes.router, prefix="/refresh", tags=["refresh"])

    return app


# Module-level app instance for uvicorn
app = create_app()
