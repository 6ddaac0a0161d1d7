# test_stock_ledger.py
import threading
import uuid

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bars.db import SessionLocal
from bars.errors import (
    ConflictError, ErrorKind, InsufficientStock, InternalError, ProductNotFound, ValidationError
)
from bars.models.common import utcnow
from bars.models.core import Product, StockMovement, StockMovementType, Tenant
from bars.services.stock import StockService
from bars.services.stock_ledger import KeyedLocks, StockLedgerStore


def _movements(db, product_id):
    return (db.query(StockMovement)
              .filter(StockMovement.product_id == product_id)
              .order_by(StockMovement.seq.asc())
              .all())


def test_sale_reject_then_inventory_count_scenario(db, tenant, make_product):
    pid = make_product(stock=10)
    svc = StockService(db)

    m = svc.adjust(tenant["id"], pid, -3, type="SALE")
    assert (m.previous_stock, m.new_stock, m.delta, m.type) == (10, 7, -3, StockMovementType.SALE)
    assert svc.current_stock(tenant["id"], pid) == 7

    with pytest.raises(InsufficientStock) as exc:
        svc.adjust(tenant["id"], pid, -10)
    assert exc.value.kind is ErrorKind.INSUFFICIENT_STOCK
    assert exc.value.available == 7
    assert svc.current_stock(tenant["id"], pid) == 7
    assert len(_movements(db, pid)) == 1

    m = svc.set_level(tenant["id"], pid, 7)
    assert (m.previous_stock, m.new_stock, m.delta, m.type) == (7, 7, 0, StockMovementType.INVENTORY_COUNT)
    assert len(_movements(db, pid)) == 2


def test_stock_equals_sum_of_deltas_and_ledger_chains(db, tenant, make_product):
    pid = make_product(stock=0)
    svc = StockService(db)
    svc.adjust(tenant["id"], pid, 12, type=StockMovementType.RESTOCK)
    svc.adjust(tenant["id"], pid, -5, type="SALE", note="bar tab")
    svc.set_level(tenant["id"], pid, 4)
    svc.adjust(tenant["id"], pid, 2, type="RETURN")
    svc.adjust(tenant["id"], pid, -1, type="SPOILAGE")

    rows = _movements(db, pid)
    assert [r.seq for r in rows] == [1, 2, 3, 4, 5]
    for r in rows:
        assert r.new_stock - r.previous_stock == r.delta
        assert r.new_stock >= 0
    for prev, nxt in zip(rows, rows[1:]):
        assert nxt.previous_stock == prev.new_stock
    assert sum(r.delta for r in rows) == svc.current_stock(tenant["id"], pid) == 5


def test_adjust_rejects_exactly_one_past_zero(db, tenant, make_product):
    pid = make_product(stock=3)
    svc = StockService(db)
    with pytest.raises(InsufficientStock):
        svc.adjust(tenant["id"], pid, -4)
    assert svc.current_stock(tenant["id"], pid) == 3
    assert _movements(db, pid) == []

    m = svc.adjust(tenant["id"], pid, -3)
    assert m.new_stock == 0
    p = db.get(Product, pid)
    assert p.stock_quantity == 0 and p.is_available is False


@pytest.mark.parametrize("delta", [0, 1.5, True, "3", None])
def test_adjust_invalid_delta(db, tenant, make_product, delta):
    pid = make_product(stock=5)
    with pytest.raises(ValidationError):
        StockService(db).adjust(tenant["id"], pid, delta)
    assert _movements(db, pid) == []


def test_adjust_validates_note_and_type(db, tenant, make_product):
    pid = make_product(stock=5)
    svc = StockService(db)
    with pytest.raises(ValidationError):
        svc.adjust(tenant["id"], pid, 1, note="")
    with pytest.raises(ValidationError):
        svc.adjust(tenant["id"], pid, 1, note="x" * 501)
    with pytest.raises(ValidationError):
        svc.adjust(tenant["id"], pid, 1, type="THEFT")
    m = svc.adjust(tenant["id"], pid, 1, note="x" * 500)
    assert m.type is StockMovementType.ADJUSTMENT
    assert len(m.note) == 500


def test_set_level_rejects_negative_quantity(db, tenant, make_product):
    pid = make_product(stock=5)
    with pytest.raises(ValidationError):
        StockService(db).set_level(tenant["id"], pid, -1)


def test_unknown_or_foreign_product(db, tenant, make_product):
    svc = StockService(db)
    with pytest.raises(ProductNotFound):
        svc.adjust(tenant["id"], "missing", 1)
    with pytest.raises(ProductNotFound):
        svc.current_stock(tenant["id"], "missing")

    stranger = Tenant(name="Other bar", slug=f"other-{tenant['id'][:8]}", settings={})
    db.add(stranger)
    db.commit()
    other = make_product(stock=5, tenant_id=stranger.id)
    with pytest.raises(ProductNotFound):
        svc.set_level(tenant["id"], other, 1)
    with pytest.raises(ProductNotFound):
        svc.list_movements(tenant["id"], other)


def test_list_movements_newest_first_bounded_and_repeatable(db, tenant, make_product):
    pid = make_product(stock=0)
    svc = StockService(db)
    for _ in range(5):
        svc.adjust(tenant["id"], pid, 1, type="RESTOCK")

    latest = svc.list_movements(tenant["id"], pid, limit=3)
    assert [m.new_stock for m in latest] == [5, 4, 3]
    assert [m.id for m in svc.list_movements(tenant["id"], pid)] == \
           [m.id for m in svc.list_movements(tenant["id"], pid)]
    with pytest.raises(ValidationError):
        svc.list_movements(tenant["id"], pid, limit=0)


def test_low_stock_lowest_first(db, tenant, make_product):
    a = make_product(stock=4, threshold=5, name="A")
    b = make_product(stock=0, threshold=2, name="B")
    make_product(stock=9, threshold=5, name="C")
    d = make_product(stock=5, threshold=5, name="D")

    ids = [p.id for p in StockService(db).list_low_stock(tenant["id"])]
    assert ids == [b, a, d]


def test_record_movement_detects_stale_previous_stock(db, tenant, make_product):
    pid = make_product(stock=5)
    store = StockLedgerStore(db)
    with pytest.raises(ConflictError):
        with store.lock_products(tenant["id"], [pid]):
            store.record_movement(StockMovement(
                tenant_id=tenant["id"], product_id=pid, type=StockMovementType.ADJUSTMENT,
                delta=-1, previous_stock=6, new_stock=5,
            ))
    assert store.get_current_stock(tenant["id"], pid) == 5
    assert _movements(db, pid) == []


@pytest.mark.parametrize("failure, raised", [
    (IntegrityError("INSERT INTO stock_movement", {}, Exception("duplicate seq")), ConflictError),
    (OperationalError("UPDATE product", {}, Exception("database is locked")), InternalError),
])
def test_failed_commit_rolls_back_both_writes(db, tenant, make_product, monkeypatch, failure, raised):
    pid = make_product(stock=5)
    store = StockLedgerStore(db)

    def broken_commit():
        raise failure

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(raised):
        with store.lock_products(tenant["id"], [pid]):
            store.record_movement(StockMovement(
                tenant_id=tenant["id"], product_id=pid, type=StockMovementType.SALE,
                delta=-2, previous_stock=5, new_stock=3,
            ))
    monkeypatch.undo()

    s = SessionLocal()
    try:
        assert StockLedgerStore(s).get_current_stock(tenant["id"], pid) == 5
        assert s.get(Product, pid).is_available is True
        assert _movements(s, pid) == []
    finally:
        s.close()


def test_lock_map_is_emptied_after_each_call(db, tenant, make_product):
    locks = KeyedLocks()
    svc = StockService(db, store=StockLedgerStore(db, locks))
    for _ in range(20):
        with pytest.raises(ProductNotFound):
            svc.adjust(tenant["id"], str(uuid.uuid4()), 1)
    assert len(locks) == 0

    pid = make_product(stock=2)
    svc.adjust(tenant["id"], pid, -1)
    with pytest.raises(InsufficientStock):
        svc.adjust(tenant["id"], pid, -5)
    svc.set_level(tenant["id"], pid, 4)
    assert len(locks) == 0


def test_deleted_product_leaves_the_ledger_surface(db, tenant, make_product):
    pid = make_product(stock=1, threshold=5)
    svc = StockService(db)
    svc.adjust(tenant["id"], pid, 1, type="RESTOCK")
    db.get(Product, pid).deleted_at = utcnow()
    db.commit()

    with pytest.raises(ProductNotFound):
        svc.adjust(tenant["id"], pid, 1)
    assert pid not in [p.id for p in svc.list_low_stock(tenant["id"])]
    assert len(_movements(db, pid)) == 1


def test_concurrent_adjusts_single_winner(tenant, make_product):
    pid = make_product(stock=1)
    n = 8
    barrier = threading.Barrier(n)
    results: list[str] = []
    guard = threading.Lock()

    def worker():
        s = SessionLocal()
        try:
            barrier.wait()
            try:
                StockService(s).adjust(tenant["id"], pid, -1, type="SALE")
                outcome = "ok"
            except InsufficientStock:
                outcome = "insufficient"
            with guard:
                results.append(outcome)
        finally:
            s.close()

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("insufficient") == n - 1
    s = SessionLocal()
    try:
        assert StockLedgerStore(s).get_current_stock(tenant["id"], pid) == 0
        assert len(_movements(s, pid)) == 1
    finally:
        s.close()
