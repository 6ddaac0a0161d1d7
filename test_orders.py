# test_orders.py
from decimal import Decimal

import pytest

from bars.errors import (
    InsufficientStock, OrderNotFound, ProductNotFound, TableNotFound, ValidationError
)
from bars.models.core import (
    DiningTable, Order, OrderItem, OrderStatus, Product, StockMovement, StockMovementType
)
from bars.services.orders import OrderService


def test_create_order_snapshots_prices_and_reserves_stock(db, tenant, make_product):
    beer = make_product(stock=10, price="3.50")
    wine = make_product(stock=4, price="6.25")
    svc = OrderService(db)

    o = svc.create_order(tenant["id"], tenant["table_id"], [
        {"product_id": beer, "quantity": 2},
        {"product_id": wine, "quantity": 1},
        {"product_id": beer, "quantity": 1},
    ])
    assert o.status is OrderStatus.PENDING_PAYMENT
    assert o.total_amount == Decimal("16.75")
    lines = {it.product_id: it for it in o.items}
    assert lines[beer].quantity == 3 and lines[beer].unit_price == Decimal("3.50")

    sale = db.query(StockMovement).filter(StockMovement.product_id == beer).one()
    assert (sale.type, sale.delta, sale.previous_stock, sale.new_stock) == (StockMovementType.SALE, -3, 10, 7)
    assert sale.note == f"Order {o.id}"

    # later price changes leave the order untouched
    db.get(Product, beer).price = Decimal("99.00")
    db.commit()
    again = svc.get_order(tenant["id"], o.id)
    assert again.total_amount == Decimal("16.75")
    assert {it.unit_price for it in again.items} == {Decimal("3.50"), Decimal("6.25")}


def test_create_order_is_all_or_nothing(db, tenant, make_product):
    plenty = make_product(stock=10)
    scarce = make_product(stock=1)

    with pytest.raises(InsufficientStock):
        OrderService(db).create_order(tenant["id"], tenant["table_id"], [
            {"product_id": plenty, "quantity": 2},
            {"product_id": scarce, "quantity": 2},
        ])

    assert db.query(Order).filter(Order.tenant_id == tenant["id"]).count() == 0
    assert db.query(OrderItem).filter(OrderItem.product_id == plenty).count() == 0
    assert db.query(StockMovement).filter(StockMovement.product_id.in_([plenty, scarce])).count() == 0
    assert db.get(Product, plenty).stock_quantity == 10


def test_create_order_checks_table_and_products(db, tenant, make_product):
    pid = make_product(stock=5)
    svc = OrderService(db)

    with pytest.raises(TableNotFound):
        svc.create_order(tenant["id"], "nope", [{"product_id": pid, "quantity": 1}])
    with pytest.raises(ProductNotFound):
        svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": "nope", "quantity": 1}])
    with pytest.raises(ValidationError):
        svc.create_order(tenant["id"], tenant["table_id"], [])
    with pytest.raises(ValidationError):
        svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 0}])

    db.get(DiningTable, tenant["table_id"]).is_active = False
    db.commit()
    with pytest.raises(ValidationError):
        svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])
    assert db.get(Product, pid).stock_quantity == 5


def test_update_status_notifies_after_commit(db, tenant, make_product):
    pid = make_product(stock=5)
    sent = []
    svc = OrderService(db, notify=lambda tid, payload: sent.append((tid, payload)))
    o = svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])

    o = svc.update_status(tenant["id"], o.id, "PREPARING")
    assert o.status is OrderStatus.PREPARING
    assert sent == [(tenant["id"], {
        "title": "Order status updated",
        "body": f"Order #{o.id} -> PREPARING",
        "data": {"url": f"/{tenant['id']}/orders/{o.id}"},
    })]


def test_notification_failure_does_not_fail_update(db, tenant, make_product):
    pid = make_product(stock=5)

    def broken(tid, payload):
        raise RuntimeError("push service down")

    svc = OrderService(db, notify=broken)
    o = svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])
    assert svc.update_status(tenant["id"], o.id, "READY").status is OrderStatus.READY
    db.expire_all()
    assert db.get(Order, o.id).status is OrderStatus.READY


def test_update_status_errors(db, tenant, make_product):
    pid = make_product(stock=5)
    svc = OrderService(db)
    o = svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])

    with pytest.raises(ValidationError):
        svc.update_status(tenant["id"], o.id, "SHIPPED")
    with pytest.raises(OrderNotFound):
        svc.update_status(tenant["id"], "missing", "READY")
    with pytest.raises(OrderNotFound):
        svc.update_status("someone-else", o.id, "READY")

    svc.update_status(tenant["id"], o.id, "CANCELLED")
    with pytest.raises(ValidationError):
        svc.update_status(tenant["id"], o.id, "PREPARING")
    # re-asserting a terminal status is harmless
    assert svc.update_status(tenant["id"], o.id, "CANCELLED").status is OrderStatus.CANCELLED


def test_list_orders_filters_by_status(db, tenant, make_product):
    pid = make_product(stock=5)
    svc = OrderService(db)
    first = svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])
    second = svc.create_order(tenant["id"], tenant["table_id"], [{"product_id": pid, "quantity": 1}])
    svc.update_status(tenant["id"], second.id, "DELIVERED")

    assert {o.id for o in svc.list_orders(tenant["id"])} == {first.id, second.id}
    assert [o.id for o in svc.list_orders(tenant["id"], "DELIVERED")] == [second.id]
    with pytest.raises(ValidationError):
        svc.list_orders(tenant["id"], "BOGUS")
