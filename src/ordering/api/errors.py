"""Map ordering errors to HTTP responses.

Protean's own exceptions (``ValidationError``, ``ObjectNotFoundError``) are
handled by ``protean.integrations.fastapi.register_exception_handlers``;
this covers the ``StorefrontError`` hierarchy.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ordering.errors import (
    ConcurrentUpdate,
    CouponError,
    InvalidTransition,
    NotFound,
    RefundFailed,
    RefundUnsupported,
    StorefrontError,
    Unauthorized,
    Unavailable,
)

_STATUS_CODES = [
    (NotFound, 404),
    (Unavailable, 409),
    (InvalidTransition, 409),
    (CouponError, 400),
    (Unauthorized, 403),
    (RefundUnsupported, 422),
    (RefundFailed, 422),
    (ConcurrentUpdate, 412),
]


def status_code_for(exc: StorefrontError) -> int:
    for error_class, status_code in _STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 400


async def _storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    return JSONResponse(status_code=status_code_for(exc), content={"error": exc.to_dict()})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, _storefront_error_handler)
