"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from scholarstream.core.logging import setup_logging
from scholarstream.core.middleware import security_middleware, setup_cors_middleware
from scholarstream.core.otel import initialize_otel, instrument_fastapi, instrument_sqlalchemy, setup_otel_logging
from scholarstream.core.config import settings
from scholarstream.db.redis import ping as redis_ping
from scholarstream.db.session import engine, init_db
import scholarstream.models  # noqa: F401  (registers all models with Base.metadata)

# Import routers
from scholarstream.api import applications, payments, scholarships, users

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        redis_ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    instrument_sqlalchemy(engine)

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="ScholarStream Backend",
    description="Scholarship applications with Stripe-paid application fees",
    version="1.0.0",
    lifespan=lifespan
)

instrument_fastapi(app)
setup_cors_middleware(app)
app.middleware("http")(security_middleware)

# Include routers
app.include_router(users.router)
app.include_router(scholarships.router)
app.include_router(applications.router)
app.include_router(payments.router)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Scholar Stream server is running"


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
