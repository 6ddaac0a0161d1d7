from dataclasses import dataclass
from functools import lru_cache

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from bars.config import settings
from bars.db import SessionLocal, get_db
from bars.errors import Forbidden, Unauthorized
from bars.models.core import UserRole
from bars.services.orders import OrderService
from bars.services.push import InMemorySubscriptionStore, NotificationDispatcher, SqlSubscriptionStore
from bars.services.stock import StockService
from bars.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionUser:
    user_id: str
    tenant_id: str
    role: str


def read_session(request: Request, creds: HTTPAuthorizationCredentials | None = None) -> SessionUser | None:
    token = request.cookies.get(settings.SESSION_COOKIE)
    if not token and creds:
        token = creds.credentials
    data = decode_token(token) if token else None
    if not data:
        return None
    return SessionUser(user_id=data["sub"], tenant_id=data["tid"], role=data.get("role") or "")


def require_auth(request: Request, creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> SessionUser:
    s = read_session(request, creds)
    if s is None:
        raise Unauthorized()
    return s


def require_tenant(tenant_id: str, s: SessionUser = Depends(require_auth)) -> SessionUser:
    # every tenant-scoped path is checked against the session's tenant
    if s.tenant_id != tenant_id:
        raise Forbidden("session does not belong to this tenant")
    return s


def require_admin(s: SessionUser = Depends(require_tenant)) -> SessionUser:
    if s.role != UserRole.ADMIN.value:
        raise Forbidden("Missing role: ADMIN")
    return s


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    store = InMemorySubscriptionStore() if settings.PUSH_STORE == "memory" else SqlSubscriptionStore(SessionLocal)
    return NotificationDispatcher(store, timeout=settings.PUSH_TIMEOUT_S, enabled=settings.PUSH_ENABLED)


def get_stock_service(db: Session = Depends(get_db)) -> StockService:
    return StockService(db)


def get_order_service(
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OrderService:
    def notify(tenant_id: str, payload: dict):
        # runs after the response is sent
        background.add_task(dispatcher.notify_safely, tenant_id, None, payload)
    return OrderService(db, notify=notify)
