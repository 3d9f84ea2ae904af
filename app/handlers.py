"""
Maps trade-bot errors to HTTP responses.

Error bodies are {"error": <message>, "code": <machine readable code>}.
Raw exchange bodies are logged, never returned.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bot.errors import (
    ConfigurationError,
    ExchangeError,
    InsufficientFundsError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "code": code})


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        logger.warning(f"Rejected request body: {fields}")
        return _error_response(400, f"Invalid request: {fields}", "invalid_request")

    @app.exception_handler(ValidationError)
    async def handle_validation(_request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning(f"Validation failed: {exc.message}")
        return _error_response(400, exc.message, exc.code)

    @app.exception_handler(InsufficientFundsError)
    async def handle_insufficient_funds(_request: Request, exc: InsufficientFundsError) -> JSONResponse:
        return _error_response(400, "Insufficient funds", exc.code)

    @app.exception_handler(UpstreamError)
    async def handle_upstream(_request: Request, exc: UpstreamError) -> JSONResponse:
        if isinstance(exc, ExchangeError):
            logger.error(f"Exchange failure at stage {exc.stage} ({exc.status_code}): {exc.raw_body}")
        else:
            logger.error(f"Upstream failure at stage {exc.stage}: {exc.message}")
        return _error_response(500, "Upstream service failure", exc.code)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration(_request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error(f"Configuration error: {exc.message}")
        return _error_response(500, "Service is not configured", exc.code)
