"""Tenant-scoped storage of current stock levels and the movement history.

Writers for one ``(tenant_id, product_id)`` are serialized twice over: an
in-process mutex per key, and ``SELECT ... FOR UPDATE`` on the product row for
databases that support row locks. The read, the check and both writes of a
movement all happen while the key is held.
"""
import logging
import threading
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bars.errors import ConflictError, InsufficientStock, InternalError, ProductNotFound, ValidationError
from bars.models.core import Product, StockMovement

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One mutex per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._refs: dict[tuple[str, str], int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: tuple[str, str]) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._refs[key] = self._refs.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._refs[key] -= 1
                if not self._refs[key]:
                    del self._refs[key]
                    del self._locks[key]


product_locks = KeyedLocks()


class StockLedgerStore:
    def __init__(self, db: Session, locks: KeyedLocks = product_locks):
        self.db = db
        self.locks = locks

    def _find(self, tenant_id: str, product_id: str, for_update: bool = False) -> Product | None:
        q = (self.db.query(Product)
             .filter(Product.id == product_id, Product.tenant_id == tenant_id,
                     Product.deleted_at.is_(None))
             .populate_existing())
        if for_update:
            q = q.with_for_update()
        return q.first()

    def get_current_stock(self, tenant_id: str, product_id: str) -> int:
        p = self._find(tenant_id, product_id)
        if p is None:
            raise ProductNotFound()
        return int(p.stock_quantity or 0)

    @contextmanager
    def lock_products(self, tenant_id: str, product_ids: Iterable[str]) -> Iterator[dict[str, Product]]:
        """Hold the ledger for the given products and yield them freshly read.

        Keys are taken in sorted order so two callers locking overlapping sets
        cannot deadlock. Anything the body leaves uncommitted is rolled back
        when it raises.
        """
        keys = sorted({(tenant_id, pid) for pid in product_ids})
        with ExitStack() as held:
            for key in keys:
                held.enter_context(self.locks.hold(key))
            try:
                products: dict[str, Product] = {}
                for _, pid in keys:
                    p = self._find(tenant_id, pid, for_update=True)
                    if p is None:
                        raise ProductNotFound(f"product {pid} not found")
                    products[pid] = p
                yield products
            except Exception:
                self.db.rollback()
                raise

    def _next_seq(self, tenant_id: str, product_id: str) -> int:
        last = (self.db.query(func.max(StockMovement.seq))
                .filter(StockMovement.tenant_id == tenant_id, StockMovement.product_id == product_id)
                .scalar())
        return int(last or 0) + 1

    def record_movement(self, movement: StockMovement, commit: bool = True) -> StockMovement:
        """Append ``movement`` and move the product's stock to ``movement.new_stock``.

        Must be called inside ``lock_products`` for the movement's product.
        With ``commit=False`` the writes are only flushed and the caller owns
        the transaction.
        """
        p = self._find(movement.tenant_id, movement.product_id)
        if p is None:
            raise ProductNotFound()
        if movement.new_stock != movement.previous_stock + movement.delta:
            raise ValidationError("new_stock must equal previous_stock + delta")
        if int(p.stock_quantity or 0) != movement.previous_stock:
            raise ConflictError("stock changed since it was read")
        if movement.new_stock < 0:
            raise InsufficientStock(available=movement.previous_stock, requested=-movement.delta)

        movement.seq = self._next_seq(movement.tenant_id, movement.product_id)
        p.stock_quantity = movement.new_stock
        p.is_available = movement.new_stock > 0
        self.db.add(movement)
        try:
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("stock ledger was written concurrently") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to record stock movement for product %s", movement.product_id)
            raise InternalError("could not record stock movement") from e

        logger.info("stock %s %s: %s -> %s (%+d, %s)", movement.tenant_id, movement.product_id,
                    movement.previous_stock, movement.new_stock, movement.delta, movement.type.value)
        return movement

    def list_movements(self, tenant_id: str, product_id: str, limit: int = 50) -> list[StockMovement]:
        return (self.db.query(StockMovement)
                .filter(StockMovement.tenant_id == tenant_id, StockMovement.product_id == product_id)
                .order_by(StockMovement.seq.desc())
                .limit(limit)
                .all())

    def list_low_stock(self, tenant_id: str) -> list[Product]:
        return (self.db.query(Product)
                .filter(Product.tenant_id == tenant_id,
                        Product.deleted_at.is_(None),
                        Product.stock_quantity <= Product.low_stock_threshold)
                .order_by(Product.stock_quantity.asc(), Product.name.asc())
                .all())
