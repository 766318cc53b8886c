"""Traducción de errores del núcleo a respuestas HTTP"""
import logging
from fastapi import HTTPException

from ..application.errors import (
    SettlementError, ValidationError, NotFoundError, ConflictError, ConcurrencyError, StateError
)
from ..config import settings

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StateError, 409),
    (ConcurrencyError, 423),
)


def to_http_exception(error: SettlementError) -> HTTPException:
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            break
    else:
        status_code = 400

    headers = None
    if error.retryable:
        headers = {"Retry-After": str(max(1, int(settings.lock_timeout_seconds)))}
    logger.warning(f"{type(error).__name__} -> {status_code}: {error}")
    return HTTPException(status_code=status_code, detail=str(error), headers=headers)
