import logging
from sqlalchemy.orm import Session

from bars.config import settings
from bars.errors import InsufficientStock, ValidationError
from bars.models.core import Product, StockMovement, StockMovementType
from bars.services.stock_ledger import StockLedgerStore

logger = logging.getLogger(__name__)

NOTE_MAX = 500


def _is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _check_note(note: str | None) -> str | None:
    if note is None:
        return None
    if not isinstance(note, str) or not (1 <= len(note) <= NOTE_MAX):
        raise ValidationError(f"note must be 1-{NOTE_MAX} characters")
    return note


def _check_type(type_) -> StockMovementType:
    if isinstance(type_, StockMovementType):
        return type_
    try:
        return StockMovementType(type_)
    except ValueError:
        raise ValidationError(f"invalid movement type: {type_}")


class StockService:
    """Adjusts, sets and reads stock through the ledger."""

    def __init__(self, db: Session, store: StockLedgerStore | None = None):
        self.db = db
        self.store = store or StockLedgerStore(db)

    def adjust(self, tenant_id: str, product_id: str, delta: int,
               type: StockMovementType | str | None = None,
               note: str | None = None, created_by_id: str | None = None) -> StockMovement:
        if not _is_int(delta) or delta == 0:
            raise ValidationError("delta must be a non-zero integer")
        mtype = _check_type(type) if type is not None else StockMovementType.ADJUSTMENT
        note = _check_note(note)

        with self.store.lock_products(tenant_id, [product_id]) as products:
            previous = int(products[product_id].stock_quantity or 0)
            new = previous + delta
            if new < 0:
                logger.warning("rejected stock adjust on %s: %s%+d would go negative", product_id, previous, delta)
                raise InsufficientStock(f"insufficient stock: available {previous}, requested {-delta}",
                                        available=previous, requested=-delta)
            movement = StockMovement(
                tenant_id=tenant_id, product_id=product_id, type=mtype,
                delta=delta, previous_stock=previous, new_stock=new,
                note=note, created_by_id=created_by_id,
            )
            return self.store.record_movement(movement)

    def set_level(self, tenant_id: str, product_id: str, quantity: int,
                  note: str | None = None, created_by_id: str | None = None,
                  type: StockMovementType | str | None = None) -> StockMovement:
        # a zero delta is allowed here: it records a confirmed count
        if not _is_int(quantity) or quantity < 0:
            raise ValidationError("quantity must be an integer >= 0")
        mtype = _check_type(type) if type is not None else StockMovementType.INVENTORY_COUNT
        note = _check_note(note)

        with self.store.lock_products(tenant_id, [product_id]) as products:
            previous = int(products[product_id].stock_quantity or 0)
            movement = StockMovement(
                tenant_id=tenant_id, product_id=product_id, type=mtype,
                delta=quantity - previous, previous_stock=previous, new_stock=quantity,
                note=note, created_by_id=created_by_id,
            )
            return self.store.record_movement(movement)

    # ── reads ───────────────────────────────────────────────────────────────
    def list_low_stock(self, tenant_id: str) -> list[Product]:
        """Products at or under their reorder threshold, lowest stock first."""
        return self.store.list_low_stock(tenant_id)

    def list_movements(self, tenant_id: str, product_id: str, limit: int | None = None) -> list[StockMovement]:
        if limit is None:
            limit = settings.MOVEMENTS_DEFAULT_LIMIT
        if not _is_int(limit) or not (1 <= limit <= settings.MOVEMENTS_MAX_LIMIT):
            raise ValidationError(f"limit must be between 1 and {settings.MOVEMENTS_MAX_LIMIT}")
        # raises ProductNotFound for a foreign or unknown product
        self.store.get_current_stock(tenant_id, product_id)
        return self.store.list_movements(tenant_id, product_id, limit)

    def current_stock(self, tenant_id: str, product_id: str) -> int:
        return self.store.get_current_stock(tenant_id, product_id)
