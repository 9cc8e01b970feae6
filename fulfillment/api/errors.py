"""Mapping of failed service results to HTTP errors."""

from typing import NoReturn

from fastapi import HTTPException, status

from fulfillment.application.results import ServiceResult

ERROR_STATUS_CODES: dict[str, int] = {
    "NOT_FOUND": 404,
    "VALIDATION_FAILED": 422,
    "INSUFFICIENT_STOCK": 409,
    "EMPTY_CART": 400,
    "CONFLICT": 409,
    "INVALID_TRANSITION": 409,
}


def raise_for_result(result: ServiceResult) -> NoReturn:
    """Raise the HTTPException matching a failed result's error code.

    The exception detail is rendered into the ``ErrorResponse`` envelope
    by the application's HTTPException handler.
    """
    error_code = result.error_code or "ERROR"
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(error_code, status.HTTP_400_BAD_REQUEST),
        detail={
            "error_code": error_code,
            "message": result.error or "Request failed",
            "details": result.details,
        },
    )
