# merchantconnect/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from merchantconnect.core.config import ConfigurationError, get_settings
from merchantconnect.core.context import ServiceContext
from merchantconnect.core.errors import ServiceNotInitializedError

# Import models so SQLModel metadata is populated before create_all()
from merchantconnect.models import user as _user_models  # noqa: F401
from merchantconnect.models import product as _product_models  # noqa: F401
from merchantconnect.models import config as _config_models  # noqa: F401

# Routers
from merchantconnect.routers.users import router as users_router
from merchantconnect.routers.products import router as products_router
from merchantconnect.routers.feed import router as feed_router
from merchantconnect.routers.configs import router as configs_router
from merchantconnect.routers.admin import router as admin_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")

try:
    settings = get_settings()
except ConfigurationError as e:
    logger.critical("Startup: %s", e)
    raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Build the service context (DB engine + tables, storage, catalog
        feed primed with the current products).

    Shutdown:
      - Close open admin forms (unsaved placeholders are removed), drop
        feed sessions, dispose the engine.
    """
    services: ServiceContext | None = getattr(app.state, "services", None)
    if services is None:
        services = ServiceContext(settings)
        app.state.services = services

    if not services.initialized:
        logger.info("Startup: Connecting to Supabase Postgres...")
        try:
            services.init()
            logger.info("Startup: DB connection OK, tables verified.")
        except Exception as e:
            logger.error("Startup: service initialization FAILED: %s", e)
            raise
    yield
    await services.teardown()


def create_app(services: ServiceContext | None = None) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # --- CORS configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceNotInitializedError)
    async def service_not_initialized(request: Request, exc: ServiceNotInitializedError):
        logger.error("Request to %s before startup: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service is starting up, please retry"},
        )

    # Versioned API prefix, e.g. /api/v1
    app.include_router(users_router, prefix=settings.API_V1_STR)
    app.include_router(products_router, prefix=settings.API_V1_STR)
    app.include_router(feed_router, prefix=settings.API_V1_STR)
    app.include_router(configs_router, prefix=settings.API_V1_STR)
    app.include_router(admin_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        """Health check endpoint (also carries client presentation config)."""
        return {
            "status": "ok",
            "service": "merchantconnect-backend",
            "logo_html": settings.LOGO_HTML,
            "rows_per_batch": settings.ROWS_PER_BATCH,
            "max_select_quantity": settings.MAX_SELECT_QUANTITY,
        }

    return app


app = create_app()
