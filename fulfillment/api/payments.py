"""Payment API endpoints.

Provides endpoints for the deferred payment path:
- POST /payments - initiate a payment for an order
- POST /payments/{id}/verify - confirm a payment with a gateway transaction ID
- POST /payments/{id}/fail - record a gateway decline
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from fulfillment.api.dependencies import (
    Principal,
    get_payment_service,
    get_principal,
    require_admin,
)
from fulfillment.api.errors import raise_for_result
from fulfillment.api.schemas import (
    ErrorResponse,
    PaymentFailRequest,
    PaymentInitiateRequest,
    PaymentResponse,
    PaymentVerifyRequest,
)
from fulfillment.application.payment_service import PaymentDTO, PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


def payment_to_response(payment: PaymentDTO) -> PaymentResponse:
    """Convert PaymentDTO to PaymentResponse."""
    return PaymentResponse(
        id=payment.id,
        order_id=payment.order_id,
        amount_cents=payment.amount_cents,
        status=payment.status.value,
        payment_method=payment.payment_method,
        transaction_id=payment.transaction_id,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": PaymentResponse, "description": "Existing payment returned"},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Initiate payment",
)
async def initiate_payment(
    request: PaymentInitiateRequest,
    response: Response,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentResponse:
    """Create a processing payment for one of the caller's orders.

    If the order already has a payment it is returned with status 200.
    """
    result = await service.initiate_payment(
        request.order_id,
        principal.user_id,
        payment_method=request.payment_method,
    )
    if not result.success or not result.payment:
        raise_for_result(result)

    if not result.created:
        response.status_code = status.HTTP_200_OK
    return payment_to_response(result.payment)


@router.post(
    "/{payment_id}/verify",
    response_model=PaymentResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Verify payment",
)
async def verify_payment(
    payment_id: str,
    request: PaymentVerifyRequest,
    _admin: Annotated[Principal, Depends(require_admin)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentResponse:
    """Mark a payment completed with the gateway's transaction ID."""
    result = await service.verify_payment(payment_id, request.transaction_id)
    if not result.success or not result.payment:
        raise_for_result(result)
    return payment_to_response(result.payment)


@router.post(
    "/{payment_id}/fail",
    response_model=PaymentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Fail payment",
)
async def fail_payment(
    payment_id: str,
    request: PaymentFailRequest,
    _admin: Annotated[Principal, Depends(require_admin)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentResponse:
    """Record that the gateway declined a processing payment."""
    result = await service.fail_payment(payment_id, request.reason)
    if not result.success or not result.payment:
        raise_for_result(result)
    return payment_to_response(result.payment)
