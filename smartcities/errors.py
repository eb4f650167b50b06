# smartcities/errors.py
"""Erreurs métier, traduites en réponses HTTP par les handlers de main.py."""
import logging
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(AppError):
    status_code = 400


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class MailDeliveryError(AppError):
    status_code = 502


def _now_isoz():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def app_error_handler(request: Request, exc: AppError):
    logger.warning("[http] %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"status_code": exc.status_code, "detail": exc.detail, "timestamp": _now_isoz()},
    )


async def storage_error_handler(request: Request, exc: Exception):
    # pas de retry ici : c'est le rôle du client de base
    logger.error("[http] %s %s -> storage failure", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"status_code": 500, "detail": "storage failure", "timestamp": _now_isoz()},
    )
