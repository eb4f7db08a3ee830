"""Storefront ordering FastAPI application.

Processes cart, checkout, order, payment and catalogue commands
synchronously via HTTP.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the domain.toml overlay (memory stores by default,
# postgres in staging/production).
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.domain import ordering  # noqa: E402
from ordering.utils.logging import add_context, clear_context, configure_logging

configure_logging()
ordering.init()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from ordering.coupon.management import seed_default_coupons

    with ordering.domain_context():
        seed_default_coupons()
    logger.info("storefront_started", domain=ordering.name)
    yield


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront Ordering API",
    description="Carts, checkout, orders and payment confirmation",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context and bind request fields for logging."""
    add_context(method=request.method, path=request.url.path)
    try:
        with ordering.domain_context():
            response = await call_next(request)
        return response
    finally:
        clear_context()


# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from ordering.api import (  # noqa: E402
    cart_router,
    coupon_router,
    order_router,
    payment_router,
    product_router,
)
from ordering.api.errors import register_error_handlers  # noqa: E402

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(coupon_router)
app.include_router(product_router)

register_exception_handlers(app)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": ordering.name}})
