"""DRF exception handler that renders domain errors."""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.errors import DomainError

logger = logging.getLogger(__name__)


def domain_exception_handler(exc, context):  # type: ignore
    """Map ``DomainError`` subclasses to ``{"status", "code", "message"}`` bodies.

    Everything else goes through DRF's default handler.
    """
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}"
        )
        return Response(
            {"status": "error", "code": exc.code, "message": exc.message},
            status=exc.http_status,
        )
    return exception_handler(exc, context)
