# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    UserRole, OrderStatus, StockMovementType,

    # Identity
    Tenant, User,

    # Dining
    DiningTable,

    # Catalog & stock ledger
    Product, StockMovement,

    # Orders
    Order, OrderItem,

    # Push
    PushSubscription,

    # Reports
    Report,
)

__all__ = [
    "UserRole", "OrderStatus", "StockMovementType",
    "Tenant", "User",
    "DiningTable",
    "Product", "StockMovement",
    "Order", "OrderItem",
    "PushSubscription",
    "Report",
]
