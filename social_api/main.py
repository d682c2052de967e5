"""
Social Graph API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (rate-limit counters)
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from social_api.config import settings
from social_api.database import engine, init_db
from social_api.errors import register_exception_handlers
from social_api.ratelimit import rate_limit
from social_api.telemetry import setup_tracing, instrument_app
from social_api.clients.redis_client import close_redis, init_redis
from social_api.routers import auth, comments, posts, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Social Graph API (env=%s)", settings.environment)

    await init_db()
    await init_redis()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Social Graph API",
    description=(
        "Users, posts, comments, likes and friend requests, with ranked "
        "friend suggestions."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# ── Routers ────────────────────────────────────────────────────────────────
limited = [Depends(rate_limit)]
app.include_router(auth.router, prefix="/auth", tags=["Auth"], dependencies=limited)
app.include_router(users.router, prefix="/users", tags=["Users"], dependencies=limited)
app.include_router(posts.router, prefix="/posts", tags=["Posts"], dependencies=limited)
app.include_router(
    comments.router, prefix="/comments", tags=["Comments"], dependencies=limited
)

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
