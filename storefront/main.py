from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import settings
from storefront.api.v1.router import api_router
from storefront.services.durable_store import RedisStore, get_durable_store
from storefront.services.odoo_client import OdooRPCError
from storefront.services.order_gateway import OrderNotFoundError, OrderResolutionError
from storefront.services.region_service import RegionLookupError


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Select the durable cache backend (Redis or in-memory)

    Shutdown:
    - Close the Redis connection pool, if any
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    store = get_durable_store()

    yield

    if isinstance(store, RedisStore):
        await store.close()
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Orders", "description": "Order history, detail, lifecycle status and payment updates"},
    {"name": "Activities", "description": "Order activity timeline"},
    {"name": "Regions", "description": "Indonesian region hierarchy and postal codes"},
    {"name": "Address", "description": "Default shipping address preference"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def _error_response(request: Request, status_code: int, exc: Exception, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        },
    )


@app.exception_handler(OrderNotFoundError)
async def order_not_found_handler(request: Request, exc: OrderNotFoundError):
    return _error_response(request, 404, exc, exc.message)


@app.exception_handler(OrderResolutionError)
async def order_resolution_handler(request: Request, exc: OrderResolutionError):
    return _error_response(request, 502, exc, exc.message)


@app.exception_handler(OdooRPCError)
async def odoo_error_handler(request: Request, exc: OdooRPCError):
    logger.error(f"Backend error on {request.method} {request.url.path}: {exc}")
    return _error_response(request, 502, exc, exc.message)


@app.exception_handler(httpx.HTTPError)
async def backend_transport_handler(request: Request, exc: httpx.HTTPError):
    logger.error(f"Backend unreachable on {request.method} {request.url.path}: {exc}")
    return _error_response(request, 502, exc, f"Backend request failed: {exc}")


@app.exception_handler(RegionLookupError)
async def region_lookup_handler(request: Request, exc: RegionLookupError):
    return _error_response(request, 502, exc, exc.message)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with durable cache validation."""
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "cache": "unknown"
        }
    }

    # Check durable cache connectivity
    try:
        await get_durable_store().get_item("__health__")
        health_status["checks"]["cache"] = "healthy"
    except Exception as e:
        health_status["checks"]["cache"] = f"unhealthy: {e}"
        health_status["status"] = "degraded"

    return health_status
