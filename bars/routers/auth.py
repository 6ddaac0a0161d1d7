from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from bars.config import settings
from bars.db import get_db
from bars.deps import read_session
from bars.errors import Unauthorized, ValidationError
from bars.models.core import Tenant, User
from bars.routers.tenant import row_from_tenant
from bars.routers.users import row_from_user
from bars.schemas.users import LoginIn
from bars.util.security import create_token, verify_pw

router = APIRouter(prefix="/auth", tags=["auth"])

ANONYMOUS = {"authenticated": False, "user": None, "tenant": None}


@router.post("/login")
def login(body: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = (body.email or "").strip().lower()
    password = body.password or ""
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_pw(user.pass_hash, password):
        raise Unauthorized("Invalid credentials")

    minutes = settings.SESSION_REMEMBER_MIN if body.remember else settings.SESSION_MIN
    token = create_token(user.id, user.tenant_id, user.role.value, minutes=minutes)
    response.set_cookie(
        settings.SESSION_COOKIE, token,
        max_age=minutes * 60,
        httponly=True,
        secure=settings.APP_ENV != "dev",
        samesite="lax",
        path="/",
    )
    return {
        "success": True,
        "data": {"redirect": f"/{user.tenant_id}/dashboard", "access_token": token},
        "message": "Logged in",
    }


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE, path="/")
    return {"success": True}


@router.get("/me")
def me(request: Request, db: Session = Depends(get_db)):
    s = read_session(request)
    if s is None:
        return ANONYMOUS
    user = db.query(User).filter(User.id == s.user_id, User.tenant_id == s.tenant_id).first()
    tenant = db.get(Tenant, s.tenant_id) if user else None
    if not user or not tenant:
        return ANONYMOUS
    return {"authenticated": True, "user": row_from_user(user), "tenant": row_from_tenant(db, tenant)}
