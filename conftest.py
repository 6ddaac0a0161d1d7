# conftest.py
import os
import random
import string
import tempfile
from decimal import Decimal

# settings are read at import time
_TMP = tempfile.mkdtemp(prefix="bars-test-")
os.environ.setdefault("APP_SECRET", "test-secret-with-enough-length-for-hs256")
os.environ.setdefault("DB_URL", f"sqlite:///{_TMP}/bars.db")
os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("PUSH_STORE", "memory")

import pytest
from fastapi.testclient import TestClient

from bars.db import Base, SessionLocal, engine
from bars.main import app
from bars.models.core import DiningTable, Product, Tenant, User, UserRole
from bars.util.security import create_token, hash_pw

Base.metadata.create_all(bind=engine)


def _suffix(k: int = 6) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="session")
def boot(client):
    r = client.post("/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"
    return r.json()


@pytest.fixture(scope="session")
def auth_headers(client, boot):
    r = client.post("/auth/login", json=boot["login"])
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["data"]["access_token"]
    # tests authenticate with the header; a stored cookie would take precedence
    client.cookies.clear()
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture(scope="session")
def rng_suffix():
    return _suffix()


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def tenant(db):
    """A fresh tenant with one active table, isolated from other tests."""
    sfx = _suffix()
    t = Tenant(name=f"Bar {sfx}", slug=f"bar-{sfx}", settings={})
    db.add(t); db.flush()
    table = DiningTable(tenant_id=t.id, label="T1", qr_code_url=f"/qr/{t.id}/t1")
    db.add(table)
    db.commit()
    return {"id": t.id, "table_id": table.id}


@pytest.fixture
def make_product(db, tenant):
    def _make(stock: int = 10, price: str = "4.50", threshold: int = 5, name: str | None = None,
              tenant_id: str | None = None) -> str:
        p = Product(tenant_id=tenant_id or tenant["id"], name=name or f"Product {_suffix()}",
                    price=Decimal(price), stock_quantity=stock, is_available=stock > 0,
                    low_stock_threshold=threshold)
        db.add(p)
        db.commit()
        return p.id
    return _make


@pytest.fixture
def tenant_headers(db, tenant):
    """Bearer headers of an ADMIN user of the ``tenant`` fixture."""
    u = User(tenant_id=tenant["id"], email=f"admin-{_suffix()}@example.com",
             pass_hash=hash_pw("secret123"), role=UserRole.ADMIN)
    db.add(u)
    db.commit()
    return {"Authorization": f"Bearer {create_token(u.id, tenant['id'], u.role.value)}"}
