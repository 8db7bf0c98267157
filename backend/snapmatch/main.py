"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from snapmatch.api import photos, public_events, purchases, webhooks
from snapmatch.core.config import settings
from snapmatch.core.logging import setup_logging
from snapmatch.core.middleware import access_middleware, register_exception_handlers, setup_cors_middleware
from snapmatch.core.otel import initialize_otel, instrument_app, instrument_clients, otel_enabled
from snapmatch.db.session import engine, init_db
from snapmatch.services.realtime.event_bus import EventBus
from snapmatch.services.realtime.redis_relay import RedisEventRelay

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        instrument_clients(engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    app.state.event_bus = EventBus()

    relay = None
    if settings.REALTIME_BROKER == "redis":
        relay = RedisEventRelay(app.state.event_bus)
        await relay.start()
        logger.info("Realtime updates relayed through Redis")

    reconcile_task = None
    if settings.FACE_RECONCILE_INTERVAL > 0:
        from snapmatch.tasks.face_reconcile import face_reconcile_task
        reconcile_task = asyncio.create_task(face_reconcile_task())
        logger.info("Face reconcile task started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if reconcile_task is not None:
        reconcile_task.cancel()
        with suppress(asyncio.CancelledError):
            await reconcile_task
    if relay is not None:
        await relay.stop()
    app.state.event_bus.close()


# Create FastAPI app
app = FastAPI(
    title="SnapMatch Backend",
    description="Event photo search, checkout and delivery",
    version="1.0.0",
    lifespan=lifespan
)

# Instrument FastAPI with OpenTelemetry
if otel_enabled():
    instrument_app(app)

app.middleware("http")(access_middleware)
# CORS stays outermost, including around 429 responses
setup_cors_middleware(app)
register_exception_handlers(app)

# Include routers
app.include_router(public_events.router)
app.include_router(purchases.router)
app.include_router(webhooks.router)
app.include_router(photos.router)


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
