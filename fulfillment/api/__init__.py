"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from fulfillment.api.admin import router as admin_router
from fulfillment.api.carts import router as carts_router
from fulfillment.api.health import router as health_router
from fulfillment.api.orders import router as orders_router
from fulfillment.api.payments import router as payments_router
from fulfillment.api.returns import router as returns_router

__all__ = [
    "admin_router",
    "carts_router",
    "health_router",
    "orders_router",
    "payments_router",
    "returns_router",
]
