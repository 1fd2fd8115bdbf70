from dataclasses import dataclass
from typing import Optional
import logging

import jwt
from fastapi.security import HTTPBearer

from .config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Identity taken from the bearer token issued by the auth service."""
    user_id: int
    role: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(user_id: int, role: str, email: Optional[str] = None) -> str:
    payload = {"sub": str(user_id), "role": role}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[Principal]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None

    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or not role:
        return None
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        return None
    return Principal(user_id=user_id, role=str(role).lower(), email=payload.get("email"))
