"""Administrative API endpoints.

All routes require the admin role:
- POST /admin/products - create a product
- GET /admin/products/{id} - product details
- PATCH /admin/products/{id} - update a product
- GET /admin/orders - list all orders (filter by status)
- GET /admin/orders/{id} - any order's details
- POST /admin/orders/{id}/status - move an order along its lifecycle
- GET /admin/returns - list all returns (filter by status)
- POST /admin/returns/{id}/process - approve, reject or settle a return
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from fulfillment.api.dependencies import (
    Principal,
    get_inventory_service,
    get_order_service,
    get_return_service,
    require_admin,
)
from fulfillment.api.errors import raise_for_result
from fulfillment.api.orders import order_to_response, orders_to_list_response
from fulfillment.api.returns import return_to_response, returns_to_list_response
from fulfillment.api.schemas import (
    ErrorResponse,
    OrderResponse,
    OrdersListResponse,
    OrderStatusUpdateRequest,
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
    ReturnProcessRequest,
    ReturnResponse,
    ReturnsListResponse,
)
from fulfillment.application.inventory_service import InventoryService, ProductDTO
from fulfillment.application.order_service import OrderService
from fulfillment.application.return_service import ReturnService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


def product_to_response(product: ProductDTO) -> ProductResponse:
    """Convert ProductDTO to ProductResponse."""
    return ProductResponse(
        id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        price_cents=product.price_cents,
        stock_quantity=product.stock_quantity,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


# ============================================================================
# Products
# ============================================================================


@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Create product",
)
async def create_product(
    request: ProductCreateRequest,
    service: Annotated[InventoryService, Depends(get_inventory_service)],
) -> ProductResponse:
    """Create a product with its initial stock."""
    result = await service.create_product(
        sku=request.sku,
        name=request.name,
        price_cents=request.price_cents,
        stock_quantity=request.stock_quantity,
        description=request.description,
    )
    if not result.success or not result.product:
        raise_for_result(result)
    return product_to_response(result.product)


@router.get(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product",
)
async def get_product(
    product_id: str,
    service: Annotated[InventoryService, Depends(get_inventory_service)],
) -> ProductResponse:
    result = await service.get_product(product_id)
    if not result.success or not result.product:
        raise_for_result(result)
    return product_to_response(result.product)


@router.patch(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Update product",
)
async def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    service: Annotated[InventoryService, Depends(get_inventory_service)],
) -> ProductResponse:
    """Update product fields. Existing orders keep their price snapshots."""
    result = await service.update_product(
        product_id,
        sku=request.sku,
        name=request.name,
        price_cents=request.price_cents,
        stock_quantity=request.stock_quantity,
        description=request.description,
    )
    if not result.success or not result.product:
        raise_for_result(result)
    return product_to_response(result.product)


# ============================================================================
# Orders
# ============================================================================


@router.get("/orders", response_model=OrdersListResponse, summary="List all orders")
async def list_all_orders(
    service: Annotated[OrderService, Depends(get_order_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    order_status: str | None = Query(default=None, alias="status", description="Filter by status"),
) -> OrdersListResponse:
    """List every user's orders, newest first."""
    result = await service.list_orders(status=order_status, page=page, limit=page_size)
    if not result.success:
        raise_for_result(result)
    return orders_to_list_response(result)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get any order",
)
async def get_any_order(
    order_id: str,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> OrderResponse:
    result = await service.get_order(order_id)
    if not result.success or not result.order:
        raise_for_result(result)
    return order_to_response(result.order)


@router.post(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update order status",
)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdateRequest,
    admin: Annotated[Principal, Depends(require_admin)],
    service: Annotated[OrderService, Depends(get_order_service)],
) -> OrderResponse:
    """Move an order along the order state machine.

    Cancelling here compensates the checkout just like a customer
    cancellation does.
    """
    result = await service.update_status(
        order_id,
        request.status,
        actor=f"admin:{admin.user_id}",
        reason=request.reason,
    )
    if not result.success or not result.order:
        raise_for_result(result)
    return order_to_response(result.order)


# ============================================================================
# Returns
# ============================================================================


@router.get("/returns", response_model=ReturnsListResponse, summary="List all returns")
async def list_all_returns(
    service: Annotated[ReturnService, Depends(get_return_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    return_status: str | None = Query(default=None, alias="status", description="Filter by status"),
) -> ReturnsListResponse:
    """List every user's return requests, newest first."""
    result = await service.list_returns(status=return_status, page=page, limit=page_size)
    if not result.success:
        raise_for_result(result)
    return returns_to_list_response(result)


@router.post(
    "/returns/{return_id}/process",
    response_model=ReturnResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Process return",
)
async def process_return(
    return_id: str,
    request: ReturnProcessRequest,
    service: Annotated[ReturnService, Depends(get_return_service)],
) -> ReturnResponse:
    """Approve, reject or settle a return request."""
    result = await service.process_return(
        return_id,
        request.status,
        refund_amount_cents=request.refund_amount_cents,
    )
    if not result.success or not result.return_request:
        raise_for_result(result)
    return return_to_response(result.return_request)
