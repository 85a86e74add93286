from pathlib import Path
from contextlib import asynccontextmanager

from alembic import command
from alembic.config import Config
from fastapi import FastAPI

from marketsync.api.routes import coins_router, health_router, history_router, stats_router, sync_router
from marketsync.core.config import settings
from marketsync.core.db import SessionLocal
from marketsync.core.logging import get_logger
from marketsync.services.scheduler import build_scheduler


log = get_logger("marketsync")


def run_migrations() -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup
    try:
        run_migrations()
    except Exception:
        log.exception("Failed to apply migrations on startup")
        raise

    # Missing provider credentials are fatal: the syncers must not start
    try:
        scheduler = build_scheduler(settings, SessionLocal)
    except Exception:
        log.exception("Failed to configure market data sync")
        raise

    app.state.scheduler = scheduler
    scheduler.start()

    yield

    # Shutdown
    log.info("Shutting down services...")
    await scheduler.stop()
    app.state.scheduler = None
    log.info("Application shutdown complete")


app = FastAPI(
    title="Market Data Sync",
    description="Live coin snapshots and multi-timeframe price history synced from Live Coin Watch",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.debug_enabled,
)


app.include_router(coins_router)
app.include_router(history_router)
app.include_router(sync_router)
app.include_router(health_router)
app.include_router(stats_router)
