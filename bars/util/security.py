import jwt
from datetime import datetime, timedelta, timezone
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from bars.config import settings

ph = PasswordHasher()

def hash_pw(p: str) -> str:
    return ph.hash(p)

def verify_pw(hashv: str, p: str) -> bool:
    try:
        return ph.verify(hashv, p)
    except (VerificationError, InvalidHashError):
        return False

def create_token(sub: str, tid: str, role: str, minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.SESSION_MIN)
    payload = {"sub": sub, "tid": tid, "role": role, "iss": settings.JWT_ISS,
               "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def decode_token(token: str) -> dict | None:
    try:
        data = jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISS)
    except jwt.PyJWTError:
        return None
    if not data.get("sub") or not data.get("tid"):
        return None
    return data
