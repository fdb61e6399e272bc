import logging

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

from core.exceptions import BaseCustomException

logger = logging.getLogger("portfolio_api")


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """
    Build the common error envelope.

    Parameters
    ----------
    status_code : int
        HTTP status code
    message : str
        Error message
    **extra
        Additional top-level fields

    Returns
    -------
    JSONResponse
        Error response
    """
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, **extra}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation errors (malformed query or body).

    Parameters
    ----------
    request : Request
        FastAPI request
    exc : RequestValidationError
        Validation error

    Returns
    -------
    JSONResponse
        Error response with a per-field error list
    """
    errors = []
    for error in exc.errors():
        field_path = ".".join(
            str(x) for x in error["loc"]
            if not isinstance(x, int) and x not in ("body", "query")
        )
        errors.append({
            "field": field_path or "request",
            "message": error["msg"],
            "type": error["type"]
        })

    return error_response(422, "Validation error", errors=errors)


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handler for HTTP exceptions.

    Parameters
    ----------
    request : Request
        FastAPI request
    exc : HTTPException
        HTTP exception

    Returns
    -------
    JSONResponse
        Error response
    """
    return error_response(exc.status_code, exc.detail)


async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for Starlette HTTP exceptions (unknown routes, wrong methods).
    """
    return error_response(exc.status_code, exc.detail)


async def custom_exception_handler(request: Request, exc: Exception):
    """
    Handler for domain exceptions and anything unexpected.

    Parameters
    ----------
    request : Request
        FastAPI request
    exc : Exception
        Exception

    Returns
    -------
    JSONResponse
        Error response
    """
    if isinstance(exc, BaseCustomException):
        status_code = exc.get_status_code()
        if status_code >= 500:
            logger.warning(f"{request.url.path} failed: {exc.message}")
        return error_response(status_code, exc.message)

    logger.exception(f"Unhandled error on {request.url.path}", exc_info=exc)
    return error_response(500, "Internal server error")
