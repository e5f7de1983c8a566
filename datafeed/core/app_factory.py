from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
the service container) so tests can build isolated apps with fake
collaborators.
"""

from fastapi import FastAPI

from datafeed import __version__
from datafeed.api.routes import cache_router, data_router, health_router
from datafeed.core.config import settings
from datafeed.core.dependencies import ServiceContainer, build_container
from datafeed.core.exception_handlers import setup_exception_handlers
from datafeed.core.logging import configure_logging
from datafeed.core.middleware import request_id_middleware, security_headers_middleware
from datafeed.core.openapi import apply_openapi_customizations


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Pre-built services; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, debug=settings.app.debug)

    app = FastAPI(
        title="Datafeed API",
        description=(
            "Serves one remote JSON dataset through a one-hour cache. Reads are "
            "public and rate limited per client IP; refresh, cache management "
            "and status require X-API-Key."
        ),
        version=__version__,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.container = container or build_container(settings)

    # Registered last runs outermost, so request ids cover the security layer.
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(data_router, prefix="/v1")
    app.include_router(cache_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
