# bars/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bars.config import settings
from bars.db import Base, engine
from bars.errors import install_error_handlers
from bars.logging_config import configure_logging
from bars.middleware import RequestIdMiddleware
import bars.models  # noqa: F401  registers tables on Base

from bars.routers import admin, auth, orders, products, push, reports, tables, tenant, users

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Bars API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(tables.router)
app.include_router(users.router)
app.include_router(tenant.router)
app.include_router(push.router)
app.include_router(reports.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
