"""
Demo login for the POS back office.

The credential table is hardcoded demo data, not a security mechanism. Who
is logged in travels with the bearer token; sales are recorded against the
token's user.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from schemas import LoginCredentials, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

INVALID_CREDENTIALS = "Invalid username or password"


def get_password_hash(password):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


# Demo credentials
DEMO_USERS: Dict[str, Dict] = {
    "admin": {
        "user": User(id="admin-1", username="admin", role="admin", name="Administrator"),
        "password_hash": get_password_hash("admin123"),
    },
    "kasir": {
        "user": User(id="kasir-1", username="kasir", role="kasir", name="Kasir 1"),
        "password_hash": get_password_hash("kasir123"),
    },
}


class LoginResult(BaseModel):
    success: bool
    error: Optional[str] = None
    user: Optional[User] = None


def authenticate(credentials: LoginCredentials) -> LoginResult:
    record = DEMO_USERS.get(credentials.username)
    if not record or not verify_password(credentials.password, record["password_hash"]):
        logger.info("Failed login for %s", credentials.username)
        return LoginResult(success=False, error=INVALID_CREDENTIALS)

    logger.info("User %s logged in", credentials.username)
    return LoginResult(success=True, user=record["user"])


def get_user(username: str) -> Optional[User]:
    record = DEMO_USERS.get(username)
    return record["user"] if record else None


def can_access(user: Optional[User], required_roles: List[str]) -> bool:
    if not user:
        return False
    return user.role in required_roles


def create_access_token(data: dict, secret_key: str, algorithm: str = "HS256",
                        expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Optional[str]:
    """Return the username a token was issued for, or None if it is invalid."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None
    return payload.get("sub")
