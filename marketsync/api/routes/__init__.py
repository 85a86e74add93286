from marketsync.api.routes.coins import router as coins_router
from marketsync.api.routes.health import router as health_router
from marketsync.api.routes.history import router as history_router
from marketsync.api.routes.stats import router as stats_router
from marketsync.api.routes.sync import router as sync_router

__all__ = ["coins_router", "health_router", "history_router", "stats_router", "sync_router"]
