"""API schemas for the fulfillment API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    has_more: bool = Field(..., description="Whether there are more pages")


# ============================================================================
# Product Schemas
# ============================================================================


class ProductCreateRequest(BaseModel):
    """Request to create a product."""

    sku: str = Field(..., min_length=1, max_length=100, description="Stock keeping unit")
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: str | None = Field(default=None, description="Product description")
    price_cents: int = Field(..., ge=0, description="Unit price in cents")
    stock_quantity: int = Field(default=0, ge=0, description="Units in stock")


class ProductUpdateRequest(BaseModel):
    """Request to update a product. Omitted fields stay unchanged."""

    sku: str | None = Field(default=None, min_length=1, max_length=100)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price_cents: int | None = Field(default=None, ge=0)
    stock_quantity: int | None = Field(default=None, ge=0)


class ProductResponse(BaseModel):
    """Product details."""

    id: str
    sku: str
    name: str
    description: str | None = None
    price_cents: int = Field(..., description="Unit price in cents")
    stock_quantity: int = Field(..., description="Units in stock")
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ============================================================================
# Cart Schemas
# ============================================================================


class CartItemAddRequest(BaseModel):
    """Request to add a product to the cart."""

    product_id: str = Field(..., description="Product to add")
    quantity: int = Field(default=1, description="Units to add")


class CartItemUpdateRequest(BaseModel):
    """Request to set a cart line quantity."""

    quantity: int = Field(..., description="New quantity")


class CartItemSchema(BaseModel):
    """Line item in a cart."""

    id: str
    product_id: str
    name: str = Field(..., description="Product name")
    quantity: int
    unit_price_cents: int = Field(..., description="Current product price")
    line_total_cents: int
    stock_quantity: int = Field(..., description="Units currently in stock")


class CartResponse(BaseModel):
    """Cart contents. ``id`` is None when the user has no cart yet."""

    id: str | None = None
    user_id: str
    items: list[CartItemSchema] = Field(default_factory=list)
    subtotal_cents: int = 0


class CartValidationResponse(BaseModel):
    """Result of checking the cart against current stock."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    cart: CartResponse


# ============================================================================
# Order Schemas
# ============================================================================


class OrderStatusEnum(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderCreateRequest(BaseModel):
    """Request to check out the caller's cart."""

    shipping_address: dict[str, Any] = Field(..., description="Shipping address")
    billing_address: dict[str, Any] | None = Field(
        default=None, description="Billing address (defaults to shipping)"
    )
    payment_method: str = Field(..., description="Payment method: cc, dc or cod")


class OrderItemSchema(BaseModel):
    """Item in an order."""

    id: str
    product_id: str
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    price_at_time_cents: int = Field(..., description="Unit price at time of order")
    line_total_cents: int


class OrderStatusHistorySchema(BaseModel):
    """Status history entry for audit trail."""

    from_status: str | None = Field(default=None, description="Previous status")
    to_status: str = Field(..., description="New status")
    reason: str | None = Field(default=None, description="Reason for transition")
    actor: str | None = Field(default=None, description="Who initiated transition")
    created_at: datetime | None = Field(default=None, description="When transition occurred")


class PaymentResponse(BaseModel):
    """Payment details."""

    id: str
    order_id: str
    amount_cents: int
    status: str
    payment_method: str
    transaction_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderResponse(BaseModel):
    """Order details response."""

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Human-readable order number")
    user_id: str
    status: OrderStatusEnum = Field(..., description="Current order status")
    payment_method: str
    total_amount_cents: int = Field(..., description="Order total in cents")
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    items: list[OrderItemSchema] = Field(..., description="Order items")
    payments: list[PaymentResponse] = Field(default_factory=list)
    status_history: list[OrderStatusHistorySchema] = Field(
        default_factory=list, description="Order status history"
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None


class OrderSummarySchema(BaseModel):
    """Order summary for listings."""

    id: str
    order_number: str
    status: OrderStatusEnum
    total_amount_cents: int
    item_count: int = Field(..., description="Number of units")
    created_at: datetime | None = None


class OrdersListResponse(PaginatedResponse):
    """Paginated list of orders."""

    items: list[OrderSummarySchema] = Field(..., description="List of orders")


class OrderCancelRequest(BaseModel):
    """Request to cancel an order."""

    reason: str | None = Field(default=None, description="Cancellation reason")


class OrderStatusUpdateRequest(BaseModel):
    """Administrative status change."""

    status: str = Field(..., description="Target status")
    reason: str | None = Field(default=None, description="Reason for the change")


# ============================================================================
# Payment Schemas
# ============================================================================


class PaymentInitiateRequest(BaseModel):
    """Request to start a payment for an order."""

    order_id: str
    payment_method: str | None = Field(
        default=None, description="Overrides the order's payment method"
    )


class PaymentVerifyRequest(BaseModel):
    """Gateway confirmation of a payment."""

    transaction_id: str = Field(..., description="Gateway transaction identifier")


class PaymentFailRequest(BaseModel):
    """Gateway decline of a payment."""

    reason: str = Field(..., min_length=1, description="Failure reason")


# ============================================================================
# Return Schemas
# ============================================================================


class ReturnCreateRequest(BaseModel):
    """Request to return a delivered order."""

    order_id: str
    reason: str = Field(..., description="Why the order is being returned")


class ReturnProcessRequest(BaseModel):
    """Administrative processing of a return."""

    status: str = Field(..., description="Target status: approved, rejected or settled")
    refund_amount_cents: int | None = Field(default=None, description="Refund in cents")


class ReturnResponse(BaseModel):
    """Return request details."""

    id: str
    order_id: str
    user_id: str
    reason: str
    status: str
    refund_amount_cents: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReturnsListResponse(PaginatedResponse):
    """Paginated list of returns."""

    items: list[ReturnResponse] = Field(..., description="List of returns")
