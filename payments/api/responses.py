from rest_framework.response import Response

from payments.domain.constants import RATE_LIMIT_CODE

VALIDATION_ERROR_CODE = "VALIDATION_ERROR"


def api_response(*, status_code, headers=None, **body):
    return Response(body, status=status_code, headers=headers)


def error_response(*, error, code, status_code, headers=None, **extra):
    return api_response(
        status_code=status_code,
        headers=headers,
        error=error,
        code=code,
        **extra,
    )


def validation_error_response(details, *, error="Invalid request body."):
    return error_response(
        error=error,
        code=VALIDATION_ERROR_CODE,
        status_code=400,
        details=details,
    )


def payment_response(*, status_code, transaction=None, error=None, code=None):
    body = {"success": 200 <= status_code < 300}
    if transaction is not None:
        body["transaction"] = transaction
    if error is not None:
        body["error"] = error
    if code is not None:
        body["code"] = code
    return Response(body, status=status_code)


def rate_limit_response(admission):
    return error_response(
        error="Daily AI request limit reached. Please try again later.",
        code=RATE_LIMIT_CODE,
        status_code=429,
        limit=admission.limit,
        resetAt=admission.reset_at.isoformat(),
    )
