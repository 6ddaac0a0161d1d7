# bars/routers/tables.py
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from bars.config import settings
from bars.db import get_db
from bars.deps import SessionUser, require_tenant
from bars.errors import ConflictError, TableNotFound, ValidationError
from bars.models.core import DiningTable, Order
from bars.schemas.catalog import TableIn, TableUpdate

router = APIRouter(prefix="/{tenant_id}/tables", tags=["tables"])


def _row_from_table(t: DiningTable) -> dict:
    return {
        "id": t.id,
        "tenant_id": t.tenant_id,
        "label": t.label,
        "qr_code_url": t.qr_code_url,
        "is_active": t.is_active,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }


def _get_table(db: Session, tenant_id: str, table_id: str) -> DiningTable:
    t = db.query(DiningTable).filter(DiningTable.id == table_id, DiningTable.tenant_id == tenant_id).first()
    if not t:
        raise TableNotFound()
    return t


# ------------------------------------------------------------------
# GET /{tenant_id}/tables  -> list tables, ?active=true|false&query=
# ------------------------------------------------------------------
@router.get("")
def list_tables(
    tenant_id: str,
    active: Optional[bool] = None,
    query: Optional[str] = None,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    q = db.query(DiningTable).filter(DiningTable.tenant_id == tenant_id)
    if active is not None:
        q = q.filter(DiningTable.is_active.is_(active))
    if query:
        like = f"%{query}%"
        q = q.filter(or_(DiningTable.label.ilike(like), DiningTable.qr_code_url.ilike(like)))
    rows = q.order_by(DiningTable.created_at.desc()).all()
    return {"success": True, "data": [_row_from_table(t) for t in rows]}


# ------------------------------------------------------------------
# POST /{tenant_id}/tables  -> create table, QR url generated if absent
# ------------------------------------------------------------------
@router.post("", status_code=201)
def create_table(
    tenant_id: str,
    body: TableIn,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    label = body.label.strip()
    if not label:
        raise ValidationError("label is required")
    qr = (body.qr_code_url or "").strip() or f"{settings.APP_URL}/qr/{tenant_id}/{uuid.uuid4()}"
    t = DiningTable(tenant_id=tenant_id, label=label, qr_code_url=qr, is_active=body.is_active)
    db.add(t)
    db.commit()
    return {"success": True, "data": _row_from_table(t)}


@router.get("/{table_id}")
def get_table(tenant_id: str, table_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    return {"success": True, "data": _row_from_table(_get_table(db, tenant_id, table_id))}


@router.patch("/{table_id}")
def update_table(
    tenant_id: str,
    table_id: str,
    body: TableUpdate,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_tenant),
):
    t = _get_table(db, tenant_id, table_id)
    changes = body.model_dump(exclude_unset=True)
    if "label" in changes:
        if not (changes["label"] or "").strip():
            raise ValidationError("label is required")
        changes["label"] = changes["label"].strip()
    for k, v in changes.items():
        setattr(t, k, v)
    db.commit()
    return {"success": True, "data": _row_from_table(t)}


@router.delete("/{table_id}")
def delete_table(tenant_id: str, table_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    t = _get_table(db, tenant_id, table_id)
    if db.query(Order.id).filter(Order.table_id == table_id).first():
        raise ConflictError("table has orders, deactivate it instead")
    db.delete(t)
    db.commit()
    return {"ok": True, "id": table_id}
