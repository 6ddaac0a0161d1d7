# bars/routers/products.py
from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from bars.db import get_db
from bars.deps import SessionUser, get_stock_service, require_tenant
from bars.errors import ProductNotFound
from bars.models.common import utcnow
from bars.models.core import Product, StockMovement, StockMovementType
from bars.schemas.catalog import ProductIn, ProductUpdate
from bars.schemas.stock import StockAdjustIn, StockSetIn
from bars.services.stock import StockService
from bars.services.stock_ledger import StockLedgerStore

router = APIRouter(prefix="/{tenant_id}/products", tags=["products"])


def _row_from_product(p: Product) -> dict:
    return {
        "id": p.id,
        "tenant_id": p.tenant_id,
        "name": p.name,
        "description": p.description,
        "price": float(p.price),
        "stock_quantity": p.stock_quantity,
        "is_available": p.is_available,
        "low_stock_threshold": p.low_stock_threshold,
        "unit_of_measure": p.unit_of_measure,
        "image_url": p.image_url,
        "category": p.category,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def row_from_movement(m: StockMovement) -> dict:
    return {
        "id": m.id,
        "tenant_id": m.tenant_id,
        "product_id": m.product_id,
        "type": m.type.value,
        "delta": m.delta,
        "previous_stock": m.previous_stock,
        "new_stock": m.new_stock,
        "note": m.note,
        "created_by_id": m.created_by_id,
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def _get_product(db: Session, tenant_id: str, product_id: str) -> Product:
    p = (db.query(Product)
         .filter(Product.id == product_id, Product.tenant_id == tenant_id, Product.deleted_at.is_(None))
         .first())
    if not p:
        raise ProductNotFound()
    return p


# ------------------------------------------------------------------
# Stock: low stock listing must be registered before /{product_id}
# ------------------------------------------------------------------
@router.get("/low-stock")
def low_stock(
    tenant_id: str,
    svc: StockService = Depends(get_stock_service),
    s: SessionUser = Depends(require_tenant),
):
    """Products at or below their reorder threshold, lowest stock first."""
    return {"data": [_row_from_product(p) for p in svc.list_low_stock(tenant_id)]}


@router.post("/{product_id}/stock-adjust")
def stock_adjust(
    tenant_id: str,
    product_id: str,
    body: StockAdjustIn,
    svc: StockService = Depends(get_stock_service),
    s: SessionUser = Depends(require_tenant),
):
    m = svc.adjust(
        tenant_id, product_id, body.delta,
        type=body.type, note=body.note,
        created_by_id=body.created_by_id or s.user_id,
    )
    return {"success": True, "message": "Stock updated successfully", "movement": row_from_movement(m)}


@router.post("/{product_id}/stock-set")
def stock_set(
    tenant_id: str,
    product_id: str,
    body: StockSetIn,
    svc: StockService = Depends(get_stock_service),
    s: SessionUser = Depends(require_tenant),
):
    m = svc.set_level(
        tenant_id, product_id, body.quantity,
        note=body.note, created_by_id=body.created_by_id or s.user_id, type=body.type,
    )
    return {"success": True, "message": "Stock level set", "movement": row_from_movement(m)}


@router.get("/{product_id}/stock-movements")
def stock_movements(
    tenant_id: str,
    product_id: str,
    limit: Optional[int] = None,
    svc: StockService = Depends(get_stock_service),
    s: SessionUser = Depends(require_tenant),
):
    return {"data": [row_from_movement(m) for m in svc.list_movements(tenant_id, product_id, limit)]}


# ------------------------------------------------------------------
# Catalog
# ------------------------------------------------------------------
@router.get("")
def list_products(
    tenant_id: str,
    available_only: bool = False,
    query: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    q = db.query(Product).filter(Product.tenant_id == tenant_id, Product.deleted_at.is_(None))
    if available_only:
        q = q.filter(Product.is_available.is_(True), Product.stock_quantity > 0)
    if category:
        q = q.filter(Product.category == category)
    if query:
        like = f"%{query}%"
        q = q.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    rows = q.order_by(Product.created_at.desc()).all()
    return {"data": [_row_from_product(p) for p in rows]}


@router.post("", status_code=201)
def create_product(
    tenant_id: str,
    body: ProductIn,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    """
    Opening stock is booked as a RESTOCK movement so the ledger
    starts from zero like every other product history.
    """
    payload = body.model_dump(exclude={"stock_quantity"})
    # availability follows stock, set by the opening RESTOCK below
    p = Product(**payload, tenant_id=tenant_id, stock_quantity=0, is_available=False)
    db.add(p)
    db.flush()

    if body.stock_quantity > 0:
        store = StockLedgerStore(db)
        with store.lock_products(tenant_id, [p.id]):
            store.record_movement(StockMovement(
                tenant_id=tenant_id, product_id=p.id, type=StockMovementType.RESTOCK,
                delta=body.stock_quantity, previous_stock=0, new_stock=body.stock_quantity,
                note="Initial stock", created_by_id=s.user_id,
            ))
    else:
        db.commit()
    return _row_from_product(p)


@router.get("/{product_id}")
def get_product(tenant_id: str, product_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    return _row_from_product(_get_product(db, tenant_id, product_id))


@router.patch("/{product_id}")
def update_product(
    tenant_id: str,
    product_id: str,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    p = _get_product(db, tenant_id, product_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(p, k, v)
    # can be taken off sale by hand, but never put on sale without stock
    p.is_available = bool(p.is_available) and p.stock_quantity > 0
    db.commit()
    db.refresh(p)
    return _row_from_product(p)


@router.delete("/{product_id}")
def delete_product(tenant_id: str, product_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    """
    Soft-delete: stamp deleted_at and take the product off sale. Its stock
    movements and past order lines stay as they are.
    """
    p = _get_product(db, tenant_id, product_id)
    p.deleted_at = utcnow()
    p.is_available = False
    db.commit()
    return {"ok": True, "id": product_id}
