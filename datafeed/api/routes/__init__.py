from __future__ import annotations

from datafeed.api.routes.cache import router as cache_router
from datafeed.api.routes.data import router as data_router
from datafeed.api.routes.health import router as health_router

__all__ = ["cache_router", "data_router", "health_router"]
