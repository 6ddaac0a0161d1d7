from fastapi import APIRouter, Depends
from typing import Optional

from bars.deps import SessionUser, get_order_service, require_tenant
from bars.models.core import Order
from bars.schemas.orders import OrderIn, OrderStatusIn
from bars.services.orders import OrderService

router = APIRouter(prefix="/{tenant_id}/orders", tags=["orders"])


def _row_from_order(o: Order, with_items: bool = False) -> dict:
    row = {
        "id": o.id,
        "tenant_id": o.tenant_id,
        "table_id": o.table_id,
        "status": o.status.value,
        "total_amount": float(o.total_amount or 0),
        "payment_intent_id": o.payment_intent_id,
        "created_at": o.created_at.isoformat() if o.created_at else None,
        "updated_at": o.updated_at.isoformat() if o.updated_at else None,
    }
    if with_items:
        row["items"] = [
            {"id": it.id, "product_id": it.product_id, "quantity": it.quantity, "unit_price": float(it.unit_price)}
            for it in o.items
        ]
    return row


@router.post("", status_code=201)
def create_order(
    tenant_id: str,
    body: OrderIn,
    svc: OrderService = Depends(get_order_service),
    s: SessionUser = Depends(require_tenant),
):
    o = svc.create_order(tenant_id, body.table_id, [it.model_dump() for it in body.items])
    return {"order": _row_from_order(o, with_items=True)}


@router.get("")
def list_orders(
    tenant_id: str,
    status: Optional[str] = None,
    svc: OrderService = Depends(get_order_service),
    s: SessionUser = Depends(require_tenant),
):
    return {"orders": [_row_from_order(o) for o in svc.list_orders(tenant_id, status)]}


@router.get("/{order_id}")
def get_order(
    tenant_id: str,
    order_id: str,
    svc: OrderService = Depends(get_order_service),
    s: SessionUser = Depends(require_tenant),
):
    return {"order": _row_from_order(svc.get_order(tenant_id, order_id), with_items=True)}


@router.patch("/{order_id}/status")
def update_status(
    tenant_id: str,
    order_id: str,
    body: OrderStatusIn,
    svc: OrderService = Depends(get_order_service),
    s: SessionUser = Depends(require_tenant),
):
    """Move an order to another status; subscribers are notified after the response."""
    return {"order": _row_from_order(svc.update_status(tenant_id, order_id, body.status))}
