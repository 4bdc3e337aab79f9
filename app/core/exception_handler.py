"""
DRF exception handler producing the API's error body.

Every REST error leaves the API as {"error": str} (plus "error_code" where
one is known), never DRF's default {"detail": ...}:

    401  missing/invalid bearer token (DRF NotAuthenticated/AuthenticationFailed)
    403  not a member of the target conversation
    404  unknown conversation/invitation
    500  storage failure (DatabaseError, PersistenceError)

Configured in settings:
    REST_FRAMEWORK["EXCEPTION_HANDLER"] = "core.exception_handler.api_exception_handler"
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError, PersistenceError

logger = logging.getLogger(__name__)


def _flatten_detail(detail) -> str:
    """Reduce DRF's nested detail structures to one readable string."""
    if isinstance(detail, dict):
        parts = [f"{key}: {_flatten_detail(value)}" for key, value in detail.items()]
        return "; ".join(parts)
    if isinstance(detail, list):
        return " ".join(_flatten_detail(item) for item in detail)
    return str(detail)


def api_exception_handler(exc, context):
    """Translate exceptions raised in views into {"error": ...} responses."""
    if isinstance(exc, BaseApplicationError):
        return Response(exc.to_dict(), status=exc.http_status)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception(f"Database error in {view.__class__.__name__}: {exc}")
        error = PersistenceError("Storage failure")
        return Response(error.to_dict(), status=error.http_status)

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    body = {"error": _flatten_detail(data.get("detail", data) if isinstance(data, dict) else data)}
    code = getattr(exc, "default_code", None)
    if code:
        body["error_code"] = str(code).upper()
    if isinstance(data, dict) and "detail" not in data:
        body["errors"] = data
    response.data = body
    return response
