"""
Error handling and sanitization

- StorefrontError -> JSON body with its code, message and details
- Unhandled exceptions -> logged with traceback, generic message to the client
"""
import logging
import traceback
from typing import Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.exceptions import StorefrontError

logger = logging.getLogger(__name__)

# Fragments that indicate internal details in an error message
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "apikey",
    "anon_key",
    "credential",
    "supabase.co",
    "postgrest",
    "httpx",
    "traceback",
    "file \"",
    "/storefront/",
    "\\storefront\\",
]


def is_sensitive_error(message: str) -> bool:
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Make an error message safe to return to a client."""
    message = error if isinstance(error, str) else str(error)

    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return "An internal error occurred. Please try again later."

    if len(message) > 200:
        return message[:200] + "..."

    return message


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"[API] {request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": sanitize_error_message(exc.message),
            "details": exc.details,
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = f"{request.client.host if request.client else 'unknown'}-{id(exc)}"
    logger.error(
        f"Unhandled exception [{error_id}]: {type(exc).__name__}: {exc}\n"
        f"Path: {request.url.path}\n"
        f"Method: {request.method}\n"
        f"Traceback:\n{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
    )

    content = {
        "error": "internal_error",
        "message": "An unexpected error occurred. Please try again later.",
        "error_id": error_id,
    }
    if settings.DEBUG:
        content["message"] = str(exc)
        content["type"] = type(exc).__name__
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
