"""Хеширование паролей и JWT для веб-авторизации."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from backoffice.config import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(subject: int, role: str, name: str, login: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),  # PyJWT требует строку в sub
        "role": role,
        "name": name,
        "login": login,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Payload токена или None, если подпись неверна или срок истёк."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
