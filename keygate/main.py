"""FastAPI application entry point.

Creates the app, configures middleware and error handling, and wires up
routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keygate.api.health import router as health_router
from keygate.api.keys import router as keys_router
from keygate.api.validate import router as validate_router
from keygate.config import settings
from keygate.db.pool import close_pool, init_pool
from keygate.errors import KeygateError, keygate_error_handler
from keygate.middleware.gatekeeper import GatekeeperMiddleware
from keygate.middleware.security import SecurityHeadersMiddleware
from keygate.services.counter_store import close_counter_store, init_counter_store

_DEFAULT_JWT_SECRET = "CHANGE-ME-IN-PRODUCTION"

logger = logging.getLogger(__name__)


def _validate_jwt_secret() -> None:
    """Validate the session-token secret at startup.

    Raises RuntimeError in production (DEBUG=False) if the secret is still the
    default value, empty, or shorter than 16 characters.
    """
    secret = settings.JWT_SECRET_KEY
    is_default = secret == _DEFAULT_JWT_SECRET

    if is_default and settings.DEBUG:
        logger.warning("JWT_SECRET_KEY is set to the default value, acceptable for development only")
        return

    if is_default:
        raise RuntimeError(
            "JWT_SECRET_KEY is still the default value. "
            "Set the secret shared with the login service before running in production."
        )

    if not secret or len(secret) < 16:
        raise RuntimeError("JWT_SECRET_KEY must be at least 16 characters long.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown lifecycle."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("aiomysql").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _validate_jwt_secret()

    await init_pool(settings)
    init_counter_store(settings)
    yield
    await close_counter_store()
    await close_pool()


app = FastAPI(
    title=settings.APP_NAME,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_exception_handler(KeygateError, keygate_error_handler)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Middleware (order matters: the last one added runs first)
# ---------------------------------------------------------------------------
app.add_middleware(GatekeeperMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(health_router, tags=["health"])
app.include_router(validate_router, prefix="/api", tags=["validation"])
app.include_router(keys_router, prefix="/api/keys", tags=["api-keys"])
