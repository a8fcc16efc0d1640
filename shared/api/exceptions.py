"""DRF exception handler for domain errors.

Registered as ``REST_FRAMEWORK["EXCEPTION_HANDLER"]``. Domain errors become
``{"detail": ..., "code": ...}`` responses; everything else falls through
to DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain.exceptions import (
    AuthorizationError,
    DomainError,
    DomainValidationError,
    EntityNotFoundError,
    IllegalStateError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND),
    (DomainValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (IllegalStateError, status.HTTP_409_CONFLICT),
)


def status_for(exc: DomainError) -> int:
    for error_type, http_status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return http_status
    return status.HTTP_400_BAD_REQUEST


def domain_exception_handler(exc, context):  # type: ignore
    if isinstance(exc, DomainError):
        http_status = status_for(exc)
        view = context.get("view")
        logger.warning(
            f"Rejected {view.__class__.__name__ if view else 'request'}: "
            f"{exc.code} ({http_status}) {exc.message}"
        )
        return Response({"detail": exc.message, "code": exc.code}, status=http_status)
    return drf_exception_handler(exc, context)
