from typing import Any, cast

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from app.schemas.common import APIResponse


def _error_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=APIResponse.error(message, data).model_dump()
    )


def http_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    exc = cast(HTTPException, exc)
    return _error_response(exc.status_code, str(exc.detail))


def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    exc = cast(RequestValidationError, exc)
    errors = [{"loc": err["loc"], "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
    logger.debug(f"Rejected {request.method} {request.url.path}: {errors}")
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", errors)


def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    # Internal details stay in the log
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
