"""Cart API endpoints.

Provides endpoints for the caller's cart:
- GET /cart - current cart
- GET /cart/validate - check cart lines against current stock
- POST /cart/items - add a product
- PUT /cart/items/{id} - change a line quantity
- DELETE /cart/items/{id} - remove a line
- DELETE /cart - empty the cart
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from fulfillment.api.dependencies import Principal, get_cart_service, get_principal
from fulfillment.api.errors import raise_for_result
from fulfillment.api.schemas import (
    CartItemAddRequest,
    CartItemSchema,
    CartItemUpdateRequest,
    CartResponse,
    CartValidationResponse,
    ErrorResponse,
)
from fulfillment.application.cart_service import CartDTO, CartService

router = APIRouter(prefix="/cart", tags=["Cart"])


# ============================================================================
# Converters
# ============================================================================


def cart_to_response(cart: CartDTO | None, user_id: str) -> CartResponse:
    """Convert CartDTO to CartResponse. A missing cart renders as empty."""
    if cart is None:
        return CartResponse(id=None, user_id=user_id)

    return CartResponse(
        id=cart.id,
        user_id=cart.user_id,
        items=[
            CartItemSchema(
                id=item.id,
                product_id=item.product_id,
                name=item.product.name,
                quantity=item.quantity,
                unit_price_cents=item.product.price_cents,
                line_total_cents=item.line_total_cents,
                stock_quantity=item.product.stock_quantity,
            )
            for item in cart.items
        ],
        subtotal_cents=cart.subtotal_cents,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=CartResponse, summary="Get cart")
async def get_cart(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
) -> CartResponse:
    """Get the caller's cart. Never creates one."""
    result = await service.get_cart(principal.user_id)
    return cart_to_response(result.cart, principal.user_id)


@router.get(
    "/validate",
    response_model=CartValidationResponse,
    responses={409: {"model": CartValidationResponse}},
    summary="Validate cart",
    description="Check every cart line against current stock. Nothing is reserved.",
)
async def validate_cart(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
):
    """Validate the caller's cart.

    Returns 200 when every line can be fulfilled and 409 with one
    message per short line otherwise.
    """
    result = await service.validate(principal.user_id)
    body = CartValidationResponse(
        valid=result.valid,
        errors=result.errors,
        cart=cart_to_response(result.cart, principal.user_id),
    )
    if not result.valid:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=body.model_dump(mode="json"),
        )
    return body


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Add item to cart",
)
async def add_item(
    request: CartItemAddRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
) -> CartResponse:
    """Add a product to the caller's cart, creating the cart if needed.

    Args:
        request: Product and quantity to add.
        principal: Caller.
        service: Cart service.

    Returns:
        Updated cart.

    Raises:
        HTTPException: If the product is unknown, the quantity is invalid
            or stock is insufficient.
    """
    result = await service.add_item(principal.user_id, request.product_id, request.quantity)
    if not result.success:
        raise_for_result(result)
    return cart_to_response(result.cart, principal.user_id)


@router.put(
    "/items/{item_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Update cart item",
)
async def update_item(
    item_id: str,
    request: CartItemUpdateRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
) -> CartResponse:
    """Set the quantity of one of the caller's cart lines."""
    result = await service.update_item(item_id, request.quantity, user_id=principal.user_id)
    if not result.success:
        raise_for_result(result)
    return cart_to_response(result.cart, principal.user_id)


@router.delete(
    "/items/{item_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Remove cart item",
)
async def remove_item(
    item_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
) -> CartResponse:
    """Remove one of the caller's cart lines."""
    result = await service.remove_item(item_id, user_id=principal.user_id)
    if not result.success:
        raise_for_result(result)
    return cart_to_response(result.cart, principal.user_id)


@router.delete("", response_model=CartResponse, summary="Clear cart")
async def clear_cart(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[CartService, Depends(get_cart_service)],
) -> CartResponse:
    """Remove every line from the caller's cart."""
    result = await service.clear(principal.user_id)
    return cart_to_response(result.cart, principal.user_id)
