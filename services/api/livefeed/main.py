"""
Live Feed API — entry point.

Startup sequence:
  1. Check required configuration (storage target, signing secret)
  2. Configure OTel tracing (→ Jaeger via OTLP), if enabled
  3. Initialise the DB engine and create tables if not present
  4. Initialise the image store (local directory or MinIO bucket)
  5. Initialise the broadcast hub
  6. Start the Kafka post-event relay, if enabled
  7. Expose Prometheus /metrics endpoint

Run with:  uvicorn livefeed.main:app --port 8080
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_client import make_asgi_app

from livefeed.auth import TokenService
from livefeed.broadcast import BroadcastHub
from livefeed.clients.image_store import build_image_store
from livefeed.clients.kafka_producer import KafkaEventRelay
from livefeed.config import Settings, settings as default_settings
from livefeed.database import dispose_db, init_db
from livefeed.errors import register_error_handlers
from livefeed.routers import auth, events, images, posts, users
from livefeed.telemetry import instrument_app, setup_tracing

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    hub = BroadcastHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of all external connections."""
        logger.info("Starting Live Feed API (env=%s)", settings.environment)
        settings.require_runtime()

        await init_db(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        app.state.images = build_image_store(settings)
        app.state.tokens = TokenService(
            settings.jwt_secret,
            ttl_seconds=settings.token_ttl_seconds,
            algorithm=settings.jwt_algorithm,
        )
        hub.init()

        relay = None
        if settings.kafka_enabled:
            relay = KafkaEventRelay(
                settings.kafka_bootstrap_servers, settings.kafka_topic_post_events
            )
            await relay.start()
            hub.connect(relay)

        logger.info("All services connected. API ready.")
        yield

        logger.info("Shutting down...")
        if relay is not None:
            hub.disconnect(relay)
            await relay.stop()
        hub.close()
        await dispose_db()

    if settings.tracing_enabled:
        setup_tracing(
            settings.service_name,
            settings.environment,
            settings.otel_exporter_otlp_endpoint,
        )

    app = FastAPI(
        title="Live Feed API",
        description=(
            "Authenticated image-post feed with live create / update / delete "
            "events for every connected viewer."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_host],
        allow_methods=["OPTIONS", "GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(posts.router, prefix="/posts", tags=["Posts"])
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(images.router, tags=["Images"])
    app.include_router(events.router, tags=["Events"])

    # ── Uploaded images (local storage only) ───────────────────────────────
    if settings.image_storage == "local":
        app.mount(
            "/images",
            StaticFiles(directory=settings.images_dir, check_dir=False),
            name="images",
        )

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    app.mount("/metrics", make_asgi_app())

    if settings.tracing_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


configure_logging(default_settings.log_level)
app = create_app()
