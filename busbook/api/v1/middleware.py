import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from busbook.core import BaseError

logger = logging.getLogger(__name__)


class ClientIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with a client id, kept in a cookie between visits"""

    async def dispatch(self, request: Request, call_next):
        client_id = request.headers.get("X-Client-Id") or request.cookies.get("client_id")

        if not client_id:
            client_id = str(uuid.uuid4())

        request.state.client_id = client_id

        response = await call_next(request)

        if not request.cookies.get("client_id"):
            response.set_cookie(
                "client_id",
                client_id,
                max_age=31536000,  # 1 year
                httponly=True,
                samesite="lax"
            )

        return response


async def base_error_handler(request: Request, exc: BaseError):
    """Render application errors as ``{"error", "details"}``"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details
        }
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    """Last-resort handler; the traceback goes to the log, not the client"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "details": {"errors": errors}
        }
    )
