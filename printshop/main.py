"""
FastAPI Application Entry Point - Print Shop Order Service
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from printshop.api import auth, health, orders, payments, products, store_settings
from printshop.config import get_gateway_settings, settings
from printshop.database import init_db
from printshop.logging_config import configure_logging
from printshop.publishers.event_publisher import EventPublisher
from printshop.services.identity import TokenIntrospectionVerifier
from printshop.services.mpesa_client import MpesaClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging, database and external clients on startup"""
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting {settings.SERVICE_NAME}...")

    init_db()
    logger.info("Database initialized")

    # Missing MPESA_* variables stop startup here instead of failing the first payment
    gateway_settings = get_gateway_settings()
    app.state.gateway = MpesaClient(gateway_settings)
    logger.info(f"M-Pesa gateway: {gateway_settings.api_base_url} ({gateway_settings.ENV})")

    app.state.identity_verifier = TokenIntrospectionVerifier()
    app.state.event_publisher = EventPublisher()
    logger.info(f"RabbitMQ events {'enabled' if settings.EVENTS_ENABLED else 'disabled'}")
    logger.info(f"{settings.SERVICE_NAME} is running on port {settings.SERVICE_PORT}")

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME}...")


# Create FastAPI application
app = FastAPI(
    title="Print Shop Order Service",
    description="Storefront orders with M-Pesa STK push payments",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(store_settings.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("printshop.main:app", host="0.0.0.0", port=settings.SERVICE_PORT)
