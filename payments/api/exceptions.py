import logging

from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler

from payments.api.responses import VALIDATION_ERROR_CODE, error_response

logger = logging.getLogger(__name__)


def _error_for(exc, status_code):
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return ("Authentication required.", "UNAUTHORIZED")
    if isinstance(exc, exceptions.PermissionDenied):
        return ("Permission denied.", "FORBIDDEN")
    if isinstance(exc, (exceptions.ParseError, exceptions.ValidationError)):
        return ("Invalid request body.", VALIDATION_ERROR_CODE)
    if status_code == status.HTTP_404_NOT_FOUND:
        return ("Resource not found.", "NOT_FOUND")
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return ("Method not allowed.", "METHOD_NOT_ALLOWED")
    if status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE:
        return ("Unsupported media type.", "UNSUPPORTED_MEDIA_TYPE")
    if status_code >= 500:
        return ("Internal server error.", "internal_error")
    return ("Request failed.", "REQUEST_FAILED")


def custom_exception_handler(exc, context):
    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "event=unhandled_api_error view=%s error=%s",
            view.__class__.__name__ if view is not None else None,
            exc.__class__.__name__,
            exc_info=exc,
        )
        return error_response(
            error="Internal server error.",
            code="internal_error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    error, code = _error_for(exc, response.status_code)
    extra = {}
    if isinstance(exc, exceptions.ValidationError):
        extra["details"] = response.data

    headers = {}
    for header in ("WWW-Authenticate", "Allow", "Retry-After"):
        if header in response:
            headers[header] = response[header]

    return error_response(
        error=error,
        code=code,
        status_code=response.status_code,
        headers=headers or None,
        **extra,
    )
