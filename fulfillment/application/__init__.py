"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure. Every service receives the
``Database`` handle explicitly.
"""

from fulfillment.application.cart_service import CartService
from fulfillment.application.inventory_service import InventoryService, InventoryStore
from fulfillment.application.order_service import OrderService
from fulfillment.application.payment_service import PaymentService
from fulfillment.application.return_service import ReturnService

__all__ = [
    "CartService",
    "InventoryService",
    "InventoryStore",
    "OrderService",
    "PaymentService",
    "ReturnService",
]
