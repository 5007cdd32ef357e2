# api/creatorpay/errors.py
"""
Error taxonomy for the paywall core.

Every error carries the HTTP status the API boundary should answer with.
None of them are retried by the core; the caller has to change input (4xx)
or retry the whole operation (5xx).
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PaywallError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(PaywallError):
    status_code = 400


class ForbiddenError(PaywallError):
    status_code = 403


class NotFoundError(PaywallError):
    status_code = 404


class ConflictError(PaywallError):
    status_code = 409


class StoreError(PaywallError):
    status_code = 500


class PaymentGatewayError(PaywallError):
    status_code = 502


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaywallError)
    async def _paywall_error(request: Request, exc: PaywallError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "kind": exc.kind},
        )
