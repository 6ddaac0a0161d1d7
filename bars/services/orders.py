import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from bars.errors import InsufficientStock, InternalError, OrderNotFound, TableNotFound, ValidationError
from bars.models.core import (
    DiningTable, Order, OrderItem, OrderStatus, StockMovement, StockMovementType
)
from bars.services.stock_ledger import StockLedgerStore

logger = logging.getLogger(__name__)

# no way out once an order lands here
TERMINAL = {OrderStatus.CANCELLED, OrderStatus.PAID}

Notify = Callable[[str, dict], None]


def _money(x) -> Decimal:
    return Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError("Valid status is required")


def status_payload(tenant_id: str, order: Order) -> dict:
    return {
        "title": "Order status updated",
        "body": f"Order #{order.id} -> {order.status.value}",
        "data": {"url": f"/{tenant_id}/orders/{order.id}"},
    }


def _merge_lines(items: Iterable) -> dict[str, int]:
    wanted: dict[str, int] = {}
    for it in items:
        pid = it.get("product_id") if isinstance(it, dict) else getattr(it, "product_id", None)
        qty = it.get("quantity") if isinstance(it, dict) else getattr(it, "quantity", None)
        if not pid:
            raise ValidationError("product_id is required")
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
            raise ValidationError("quantity must be a positive integer")
        wanted[pid] = wanted.get(pid, 0) + qty
    if not wanted:
        raise ValidationError("items are required")
    return wanted


class OrderService:
    def __init__(self, db: Session, store: StockLedgerStore | None = None, notify: Notify | None = None):
        self.db = db
        self.store = store or StockLedgerStore(db)
        self.notify = notify

    def create_order(self, tenant_id: str, table_id: str, items: Iterable) -> Order:
        """Open an order on a table, snapshotting prices and reserving stock.

        The order, its items and one SALE movement per product are committed
        together or not at all.
        """
        if not table_id:
            raise ValidationError("table_id is required")
        wanted = _merge_lines(items)

        table = (self.db.query(DiningTable)
                 .filter(DiningTable.id == table_id, DiningTable.tenant_id == tenant_id)
                 .first())
        if not table:
            raise TableNotFound("table not found for this tenant")
        if not table.is_active:
            raise ValidationError("table is inactive")

        with self.store.lock_products(tenant_id, wanted) as products:
            order = Order(tenant_id=tenant_id, table_id=table_id,
                          status=OrderStatus.PENDING_PAYMENT, total_amount=Decimal("0"))
            self.db.add(order)
            self.db.flush()

            total = Decimal("0")
            for pid, qty in wanted.items():
                p = products[pid]
                unit = _money(p.price)
                total += unit * qty
                order.items.append(OrderItem(product_id=pid, quantity=qty, unit_price=unit))

                previous = int(p.stock_quantity or 0)
                if previous < qty:
                    raise InsufficientStock(
                        f"insufficient stock for product {pid}: available {previous}, requested {qty}",
                        available=previous, requested=qty,
                    )
                self.store.record_movement(StockMovement(
                    tenant_id=tenant_id, product_id=pid, type=StockMovementType.SALE,
                    delta=-qty, previous_stock=previous, new_stock=previous - qty,
                    note=f"Order {order.id}",
                ), commit=False)

            order.total_amount = _money(total)
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to persist order on table %s", table_id)
                raise InternalError("could not create order") from e

        logger.info("order %s opened on table %s: %d lines, total %s",
                    order.id, table_id, len(wanted), order.total_amount)
        return order

    def update_status(self, tenant_id: str, order_id: str, status) -> Order:
        new = parse_status(status)
        o = (self.db.query(Order)
             .filter(Order.id == order_id, Order.tenant_id == tenant_id)
             .with_for_update()
             .first())
        if not o:
            raise OrderNotFound()
        if o.status in TERMINAL and new != o.status:
            self.db.rollback()
            raise ValidationError(f"order is already {o.status.value}")

        previous = o.status
        o.status = new
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to update order %s", order_id)
            raise InternalError("could not update order status") from e
        logger.info("order %s: %s -> %s", order_id, previous.value, new.value)

        if self.notify is not None:
            try:
                self.notify(tenant_id, status_payload(tenant_id, o))
            except Exception:
                logger.exception("status notification for order %s failed", order_id)
        return o

    def list_orders(self, tenant_id: str, status=None) -> list[Order]:
        q = self.db.query(Order).filter(Order.tenant_id == tenant_id)
        if status:
            q = q.filter(Order.status == parse_status(status))
        return q.order_by(Order.created_at.desc()).all()

    def get_order(self, tenant_id: str, order_id: str) -> Order:
        o = (self.db.query(Order)
             .options(selectinload(Order.items))
             .filter(Order.id == order_id, Order.tenant_id == tenant_id)
             .first())
        if not o:
            raise OrderNotFound()
        return o
