from decimal import Decimal
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bars.config import settings
from bars.db import get_db
from bars.errors import Forbidden
from bars.models.core import DiningTable, Product, Tenant, User, UserRole
from bars.util.security import hash_pw

router = APIRouter(prefix="/admin", tags=["admin"])

DEMO_PRODUCTS = [
    # name, category, price, threshold
    ("Pression 25cl", "Beer", "3.50", 10),
    ("Mojito", "Cocktail", "8.00", 5),
    ("Coca-Cola", "Soft", "3.00", 12),
]


@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    """Seed a demo tenant with an admin, one table and a few products (dev only)."""
    if settings.APP_ENV != "dev":
        raise Forbidden("Not allowed")

    t = db.query(Tenant).filter(Tenant.slug == "demo").first()
    if not t:
        t = Tenant(name="Demo Bar", slug="demo", settings={})
        db.add(t); db.flush()

    u = db.query(User).filter(User.email == "admin@example.com").first()
    if not u:
        u = User(tenant_id=t.id, email="admin@example.com", name="Admin",
                 pass_hash=hash_pw("admin123"), role=UserRole.ADMIN)
        db.add(u); db.flush()

    table = db.query(DiningTable).filter(DiningTable.tenant_id == t.id).first()
    if not table:
        table = DiningTable(tenant_id=t.id, label="T1", qr_code_url=f"{settings.APP_URL}/qr/{t.id}/t1")
        db.add(table); db.flush()

    if not db.query(Product.id).filter(Product.tenant_id == t.id).first():
        # stock starts at zero; restock through the ledger
        for name, category, price, threshold in DEMO_PRODUCTS:
            db.add(Product(tenant_id=t.id, name=name, category=category, price=Decimal(price),
                           stock_quantity=0, is_available=False, low_stock_threshold=threshold))

    db.commit()
    return {"tenant_id": t.id, "admin_user_id": u.id, "table_id": table.id,
            "login": {"email": "admin@example.com", "password": "admin123"}}
