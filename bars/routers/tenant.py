from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from bars.db import get_db
from bars.deps import SessionUser, require_admin, require_tenant
from bars.errors import TenantNotFound
from bars.models.core import DiningTable, Order, Product, Tenant, User
from bars.schemas.catalog import TenantUpdate

router = APIRouter(prefix="/{tenant_id}/tenant", tags=["tenant"])


def tenant_stats(db: Session, tenant_id: str) -> dict:
    def count(model, *where):
        return db.query(func.count(model.id)).filter(model.tenant_id == tenant_id, *where).scalar() or 0
    return {
        "users": count(User),
        "products": count(Product, Product.deleted_at.is_(None)),
        "tables": count(DiningTable),
        "orders": count(Order),
    }


def row_from_tenant(db: Session, t: Tenant) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "slug": t.slug,
        "logo_url": t.logo_url,
        "settings": t.settings or {},
        "stats": tenant_stats(db, t.id),
    }


@router.get("")
def get_tenant(tenant_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    t = db.get(Tenant, tenant_id)
    if not t:
        raise TenantNotFound()
    return {"data": row_from_tenant(db, t)}


@router.patch("")
def update_tenant(tenant_id: str, body: TenantUpdate, db: Session = Depends(get_db), s: SessionUser = Depends(require_admin)):
    t = db.get(Tenant, tenant_id)
    if not t:
        raise TenantNotFound()
    changes = body.model_dump(exclude_unset=True)
    if "settings" in changes:
        # merge so partial updates keep the other keys
        changes["settings"] = {**(t.settings or {}), **(changes["settings"] or {})}
    for k, v in changes.items():
        setattr(t, k, v)
    db.commit()
    return {"data": row_from_tenant(db, t)}
