# bars/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bars.db import get_db
from bars.deps import SessionUser, require_admin, require_tenant
from bars.errors import ConflictError, UserNotFound, ValidationError
from bars.models.core import User, UserRole
from bars.schemas.users import UserIn, UserUpdate
from bars.util.security import hash_pw

router = APIRouter(prefix="/{tenant_id}/users", tags=["users"])


def row_from_user(u: User) -> dict:
    # pass_hash never leaves this module
    return {
        "id": u.id,
        "tenant_id": u.tenant_id,
        "email": u.email,
        "name": u.name,
        "role": u.role.value,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


def _get_user(db: Session, tenant_id: str, user_id: str) -> User:
    u = db.query(User).filter(User.id == user_id, User.tenant_id == tenant_id).first()
    if not u:
        raise UserNotFound()
    return u


def _norm_email(email: str) -> str:
    email = email.strip().lower()
    if "@" not in email:
        raise ValidationError("invalid email")
    return email


@router.get("")
def list_users(tenant_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    users = db.query(User).filter(User.tenant_id == tenant_id).order_by(User.created_at.desc()).all()
    return {"data": [row_from_user(u) for u in users]}


@router.post("", status_code=201)
def create_user(tenant_id: str, body: UserIn, db: Session = Depends(get_db), s: SessionUser = Depends(require_admin)):
    email = _norm_email(body.email)
    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("Email already exists")
    u = User(tenant_id=tenant_id, email=email, name=body.name,
             pass_hash=hash_pw(body.password), role=UserRole(body.role))
    db.add(u)
    db.commit()
    return row_from_user(u)


@router.get("/{user_id}")
def get_user(tenant_id: str, user_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    return row_from_user(_get_user(db, tenant_id, user_id))


@router.patch("/{user_id}")
def update_user(
    tenant_id: str,
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    s: SessionUser = Depends(require_admin),
):
    u = _get_user(db, tenant_id, user_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("email"):
        email = _norm_email(changes["email"])
        clash = db.query(User.id).filter(User.email == email, User.id != user_id).first()
        if clash:
            raise ConflictError("Email already exists")
        u.email = email
    if changes.get("password"):
        u.pass_hash = hash_pw(changes["password"])
    if changes.get("role"):
        u.role = UserRole(changes["role"])
    if "name" in changes:
        u.name = changes["name"]
    db.commit()
    return row_from_user(u)


@router.delete("/{user_id}")
def delete_user(tenant_id: str, user_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_admin)):
    if user_id == s.user_id:
        raise ValidationError("cannot delete your own account")
    u = _get_user(db, tenant_id, user_id)
    db.delete(u)
    db.commit()
    return {"ok": True, "id": user_id}
