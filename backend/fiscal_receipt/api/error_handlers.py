"""
Custom exception handlers for FastAPI.
Provides clear, actionable error messages for validation and server errors.
"""

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from fiscal_receipt.core.observability import sentry_capture_exception


def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are client errors; the raw body is not echoed back
    # because it carries the scanned link.
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            {
                "error": "Validation error",
                "details": [
                    {key: value for key, value in error.items() if key not in ("input", "url")}
                    for error in exc.errors()
                ],
            }
        ),
    )


def generic_exception_handler(request: Request, exc: Exception):
    sentry_capture_exception(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc),
        },
    )
