"""Order API endpoints.

Provides endpoints for the caller's orders:
- GET /orders - list orders (paginated)
- GET /orders/{id} - order details and status
- POST /orders - check out the cart
- POST /orders/{id}/cancel - cancel a pending order
- GET /orders/{id}/payment - latest payment of an order
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Response, status

from fulfillment.api.dependencies import (
    Principal,
    get_order_service,
    get_payment_service,
    get_principal,
)
from fulfillment.api.errors import raise_for_result
from fulfillment.api.payments import payment_to_response
from fulfillment.api.schemas import (
    ErrorResponse,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderItemSchema,
    OrderResponse,
    OrdersListResponse,
    OrderStatusEnum,
    OrderStatusHistorySchema,
    OrderSummarySchema,
    PaymentResponse,
)
from fulfillment.application.order_service import ListOrdersResult, OrderDTO, OrderService
from fulfillment.application.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["Orders"])


# ============================================================================
# Converters
# ============================================================================


def order_to_response(order: OrderDTO) -> OrderResponse:
    """Convert OrderDTO to OrderResponse."""
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        status=OrderStatusEnum(order.status.value),
        payment_method=order.payment_method,
        total_amount_cents=order.total_amount_cents,
        shipping_address=order.shipping_address,
        billing_address=order.billing_address,
        items=[
            OrderItemSchema(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_time_cents=item.price_at_time_cents,
                line_total_cents=item.line_total_cents,
            )
            for item in order.items
        ],
        payments=[payment_to_response(p) for p in order.payments],
        status_history=[
            OrderStatusHistorySchema(
                from_status=entry.from_status,
                to_status=entry.to_status,
                reason=entry.reason,
                actor=entry.actor,
                created_at=entry.created_at,
            )
            for entry in order.status_history
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
        cancelled_at=order.cancelled_at,
    )


def order_to_summary(order: OrderDTO) -> OrderSummarySchema:
    """Convert OrderDTO to OrderSummarySchema."""
    return OrderSummarySchema(
        id=order.id,
        order_number=order.order_number,
        status=OrderStatusEnum(order.status.value),
        total_amount_cents=order.total_amount_cents,
        item_count=sum(item.quantity for item in order.items),
        created_at=order.created_at,
    )


def orders_to_list_response(result: ListOrdersResult) -> OrdersListResponse:
    """Convert ListOrdersResult to a paginated response."""
    return OrdersListResponse(
        items=[order_to_summary(order) for order in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.limit,
        has_more=(result.page * result.limit) < result.total,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=OrdersListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List orders",
    description="Get a paginated list of the caller's orders, newest first.",
)
async def list_orders(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[OrderService, Depends(get_order_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> OrdersListResponse:
    """List the caller's orders with pagination."""
    result = await service.list_orders(user_id=principal.user_id, page=page, limit=page_size)
    return orders_to_list_response(result)


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": OrderResponse, "description": "Replay of an earlier checkout"},
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Check out",
    description="Convert the caller's cart into an order in one atomic step.",
)
async def create_order(
    request: OrderCreateRequest,
    response: Response,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[OrderService, Depends(get_order_service)],
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> OrderResponse:
    """Check out the caller's cart.

    Sending the same ``Idempotency-Key`` again returns the original
    order with status 200 instead of creating a second one.

    Args:
        request: Addresses and payment method.
        response: Outgoing response, used to signal a replay.
        principal: Caller.
        service: Order service.
        idempotency_key: Optional client-chosen retry key.

    Returns:
        The created or replayed order.

    Raises:
        HTTPException: If the cart is empty, stock is insufficient, the
            payment method is unknown or a concurrent checkout won.
    """
    result = await service.create_order(
        user_id=principal.user_id,
        shipping_address=request.shipping_address,
        billing_address=request.billing_address or request.shipping_address,
        payment_method=request.payment_method,
        idempotency_key=idempotency_key,
    )
    if not result.success or not result.order:
        raise_for_result(result)

    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return order_to_response(result.order)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get order details",
)
async def get_order(
    order_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[OrderService, Depends(get_order_service)],
) -> OrderResponse:
    """Get one of the caller's orders.

    Orders of other users are reported as not found.
    """
    result = await service.get_order(order_id, user_id=principal.user_id)
    if not result.success or not result.order:
        raise_for_result(result)
    return order_to_response(result.order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Cancel order",
    description="Cancel an order. Customers can only cancel pending orders.",
)
async def cancel_order(
    order_id: str,
    request: OrderCancelRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[OrderService, Depends(get_order_service)],
) -> OrderResponse:
    """Cancel one of the caller's pending orders.

    Stock is returned and a settled payment is refunded.
    """
    result = await service.cancel_order(order_id, principal.user_id, reason=request.reason)
    if not result.success or not result.order:
        raise_for_result(result)
    return order_to_response(result.order)


@router.get(
    "/{order_id}/payment",
    response_model=PaymentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get order payment",
)
async def get_order_payment(
    order_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentResponse:
    """Get the latest payment of one of the caller's orders."""
    result = await service.get_payment_for_order(order_id, principal.user_id)
    if not result.success or not result.payment:
        raise_for_result(result)
    return payment_to_response(result.payment)
