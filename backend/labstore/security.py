# backend/labstore/security.py

"""
Security helpers for the lab store.

Responsibilities:
- Password hashing and verification
- JWT access token creation and validation
- The admin gate: FastAPI dependency that resolves the current admin

Tokens are validated on every request against the admins table, so there
is no process-wide session state. Logout stamps `Admin.token_revoked_at`
and every token issued before that instant stops validating.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHash
import bcrypt

from .database import get_db
from .errors import Unauthorized
from labstore.apps.accounts import models as account_models

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------

# In production, ALWAYS override these via environment variables.
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

try:
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480")
    )
except ValueError:
    ACCESS_TOKEN_EXPIRE_MINUTES = 480

# A missing header is rendered as the Unauthorized failure envelope.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


# ---------------------------------------------------------------------------
# PASSWORD HASHING
# ---------------------------------------------------------------------------


def _argon2_param(name: str, default: int) -> int:
    return int(os.getenv(f"ARGON2_{name}", str(default)))


# Memory cost is in KiB.
_argon2 = PasswordHasher(
    time_cost=_argon2_param("TIME_COST", 3),
    memory_cost=_argon2_param("MEMORY_COST", 65536),
    parallelism=_argon2_param("PARALLELISM", 2),
    hash_len=_argon2_param("HASH_LEN", 32),
    salt_len=_argon2_param("SALT_LEN", 16),
)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def _check_argon2(plain: str, hashed: str) -> bool:
    try:
        return _argon2.verify(hashed, plain)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def _check_bcrypt(plain: str, hashed: str) -> bool:
    # Accounts carried over from the bcrypt-era admin table.
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not isinstance(hashed_password, str):
        return False
    if hashed_password.startswith("$argon2"):
        return _check_argon2(plain_password, hashed_password)
    if hashed_password.startswith(_BCRYPT_PREFIXES):
        return _check_bcrypt(plain_password, hashed_password)
    return False


def get_password_hash(password: str) -> str:
    """Argon2id hash for new and changed admin passwords."""
    return _argon2.hash(password)


# ---------------------------------------------------------------------------
# JWT TOKENS
# ---------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_access_token(
    *,
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT.

    The `data` dict should already include the subject, e.g.:
        {"sub": str(admin.id)}

    `iat` is written with sub-second precision so a token issued right
    after a logout is not mistaken for one issued before it.
    """
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "iat": now.timestamp()})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


# ---------------------------------------------------------------------------
# ADMIN LOOKUP
# ---------------------------------------------------------------------------


def get_admin_by_id(
    db: Session,
    admin_id: Union[str, int, None],
) -> Optional[account_models.Admin]:
    if admin_id is None:
        return None
    try:
        normalised_id = int(str(admin_id).strip())
    except ValueError:
        return None
    return (
        db.query(account_models.Admin)
        .filter(account_models.Admin.id == normalised_id)
        .first()
    )


def validate_token(db: Session, token: Optional[str]) -> Optional[account_models.Admin]:
    """
    Resolve a bearer token to its admin, or None.

    None covers every rejection: missing token, bad signature, expiry,
    unknown admin, and tokens issued before the admin's last logout.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

    admin = get_admin_by_id(db, payload.get("sub"))
    if admin is None:
        return None

    issued_at = payload.get("iat")
    if admin.token_revoked_at is not None:
        if issued_at is None or float(issued_at) < _as_utc(admin.token_revoked_at).timestamp():
            return None
    return admin


def is_authorized(db: Session, token: Optional[str]) -> bool:
    return validate_token(db, token) is not None


# ---------------------------------------------------------------------------
# FASTAPI DEPENDENCIES
# ---------------------------------------------------------------------------


def get_current_admin(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.Admin:
    """
    The admin gate. Every inventory route depends on this.

    Raises Unauthorized (rendered as the tagged failure envelope with 401)
    when the token does not resolve to an admin.
    """
    admin = validate_token(db, token)
    if admin is None:
        logger.info("Rejected request without a valid admin token")
        raise Unauthorized("Unauthorized")
    return admin
