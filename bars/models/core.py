from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from bars.db import Base
from bars.models.common import IdMixin, TSMixin, utcnow

# ── Enums ───────────────────────────────────────────────────────────────────
class UserRole(PyEnum):
    ADMIN = "ADMIN"
    BARTENDER = "BARTENDER"
    WAITER = "WAITER"

class OrderStatus(PyEnum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

class StockMovementType(PyEnum):
    RESTOCK = "RESTOCK"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    SPOILAGE = "SPOILAGE"
    RETURN = "RETURN"
    INVENTORY_COUNT = "INVENTORY_COUNT"

# ── Identity ────────────────────────────────────────────────────────────────
class Tenant(Base, IdMixin, TSMixin):
    __tablename__ = "tenant"
    name: Mapped[str] = mapped_column(String(160))
    slug: Mapped[str] = mapped_column(String(80), unique=True)
    logo_url: Mapped[str | None] = mapped_column(String(400))
    settings: Mapped[dict] = mapped_column(JSON, default=dict)

class User(Base, IdMixin, TSMixin):
    __tablename__ = "user"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"))
    email: Mapped[str] = mapped_column(String(160), unique=True)
    name: Mapped[str | None] = mapped_column(String(160))
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.WAITER)

# ── Dining ──────────────────────────────────────────────────────────────────
class DiningTable(Base, IdMixin, TSMixin):
    __tablename__ = "dining_table"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"))
    label: Mapped[str] = mapped_column(String(60))
    qr_code_url: Mapped[str] = mapped_column(String(400))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Catalog & stock ─────────────────────────────────────────────────────────
class Product(Base, IdMixin, TSMixin):
    __tablename__ = "product"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)   # current stock, never negative
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=5)  # reorder threshold
    unit_of_measure: Mapped[str | None] = mapped_column(String(20), default="unit")
    image_url: Mapped[str | None] = mapped_column(String(400))
    category: Mapped[str | None] = mapped_column(String(80))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))  # soft delete keeps the ledger

class StockMovement(Base, IdMixin):
    """One audited change to a product's stock. Rows are inserted once and never updated."""
    __tablename__ = "stock_movement"
    tenant_id: Mapped[str] = mapped_column(String(36))
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    seq: Mapped[int] = mapped_column(Integer)  # per-product position in the ledger, 1-based
    type: Mapped[StockMovementType] = mapped_column(Enum(StockMovementType))
    delta: Mapped[int] = mapped_column(Integer)
    previous_stock: Mapped[int] = mapped_column(Integer)
    new_stock: Mapped[int] = mapped_column(Integer)
    note: Mapped[str | None] = mapped_column(String(500))
    created_by_id: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "seq", name="uq_stock_movement_seq"),
    )

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMixin):
    __tablename__ = "order"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_table.id"))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING_PAYMENT)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    payment_intent_id: Mapped[str | None] = mapped_column(String(120))
    items: Mapped[list["OrderItem"]] = relationship(back_populates="order", cascade="all, delete-orphan")

class OrderItem(Base, IdMixin, TSMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # price at order time
    order: Mapped[Order] = relationship(back_populates="items")

# ── Push ────────────────────────────────────────────────────────────────────
class PushSubscription(Base, IdMixin, TSMixin):
    __tablename__ = "push_subscription"
    tenant_id: Mapped[str] = mapped_column(String(36))
    user_id: Mapped[str] = mapped_column(String(36))  # "_all" for anonymous devices
    key: Mapped[str] = mapped_column(String(64))      # sha256 of the canonical subscription json
    subscription: Mapped[dict] = mapped_column(JSON)
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", "key", name="uq_push_subscription_key"),
        Index("ix_push_subscription_tenant", "tenant_id"),
    )

# ── Reports ─────────────────────────────────────────────────────────────────
class Report(Base, IdMixin, TSMixin):
    __tablename__ = "report"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"))
    title: Mapped[str] = mapped_column(String(200))
    period: Mapped[str] = mapped_column(String(10))  # day | week | month | year | custom
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    data: Mapped[dict] = mapped_column(JSON)
    creator_id: Mapped[str | None] = mapped_column(String(36))
