"""Shared FastAPI dependencies.

Resolves the caller's identity and builds request-scoped services from
the handles stored on ``app.state`` by the application lifespan.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from fulfillment.application import (
    CartService,
    InventoryService,
    OrderService,
    PaymentService,
    ReturnService,
)
from fulfillment.infrastructure.config import Settings
from fulfillment.infrastructure.database import Database

USER_ID_HEADER = "X-User-ID"
USER_ROLE_HEADER = "X-User-Role"
ADMIN_ROLE = "admin"


# ============================================================================
# Identity
# ============================================================================


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as resolved by the upstream identity layer."""

    user_id: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_principal(request: Request) -> Principal:
    """Resolve the caller from the trusted identity headers.

    Raises:
        HTTPException: 401 if no user ID was forwarded.
    """
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "UNAUTHORIZED",
                "message": f"Missing {USER_ID_HEADER} header",
            },
        )
    role = request.headers.get(USER_ROLE_HEADER, "customer").strip().lower() or "customer"
    return Principal(user_id=user_id, role=role)


def require_admin(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
    """Allow only callers with the admin role.

    Raises:
        HTTPException: 403 for non-admin callers.
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error_code": "FORBIDDEN",
                "message": "Admin role required",
            },
        )
    return principal


# ============================================================================
# Services
# ============================================================================


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_cart_service(request: Request) -> CartService:
    """Get cart service with request ID."""
    return CartService(get_db(request), request_id=_request_id(request))


def get_inventory_service(request: Request) -> InventoryService:
    """Get inventory service with request ID."""
    return InventoryService(get_db(request), request_id=_request_id(request))


def get_order_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    return OrderService(
        get_db(request),
        get_app_settings(request),
        request_id=_request_id(request),
    )


def get_payment_service(request: Request) -> PaymentService:
    """Get payment service with request ID."""
    return PaymentService(get_db(request), request_id=_request_id(request))


def get_return_service(request: Request) -> ReturnService:
    """Get return service with request ID."""
    return ReturnService(get_db(request), request_id=_request_id(request))
