import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessRuleError(Exception):
    """Refusal of an otherwise well-formed request, rendered as code/detail/fields."""

    def __init__(self, code: str, detail: str, fields: dict | None = None, status_code: int = 400):
        super().__init__(detail)
        self.code = code
        self.detail = detail
        self.fields = fields or {}
        self.status_code = status_code


def error_response(code, detail, fields=None, status_code=400):
    return Response({"code": code, "detail": detail, "fields": fields or {}}, status=status_code)


def _error_code(exc):
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            return codes
    return getattr(exc, "default_code", "error")


def api_exception_handler(exc, context):
    if isinstance(exc, BusinessRuleError):
        return error_response(exc.code, exc.detail, exc.fields, exc.status_code)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("Store failure in %s", view.__class__.__name__ if view else "unknown view")
        return error_response(
            "store_error",
            "The data store rejected the operation. Nothing was saved.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}

    response.data = {
        "code": _error_code(exc),
        "detail": detail,
        "fields": fields,
    }
    return response
