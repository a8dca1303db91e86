# backend/labstore/apps/accounts/services.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from labstore.apps.audit import services as audit_services
from labstore.database import atomic
from labstore.errors import Conflict, InvalidInput, Unauthorized
from labstore.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_password_hash,
    verify_password,
)

from . import models, schemas

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def _normalise_username(username: Optional[str]) -> str:
    return (username or "").strip()


def get_admin_by_username(db: Session, username: str) -> Optional[models.Admin]:
    return (
        db.query(models.Admin)
        .filter(models.Admin.username == _normalise_username(username))
        .first()
    )


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


def ensure_default_admin(db: Session, *, username: str, password: str) -> Optional[models.Admin]:
    """
    Create the first admin if the table is empty.

    Returns the new admin, or None when at least one admin already exists.
    """
    if db.query(models.Admin).count() > 0:
        return None
    username = _normalise_username(username)
    if not username or not password:
        raise InvalidInput("Default admin username and password are required.")
    with atomic(db):
        admin = models.Admin(username=username, hashed_password=get_password_hash(password))
        db.add(admin)
    logger.info("Created default admin", extra={"username": username})
    return admin


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


def authenticate_admin(db: Session, *, login_req: schemas.LoginRequest) -> models.Admin:
    admin = get_admin_by_username(db, login_req.username)
    if admin is None or not verify_password(login_req.password, admin.hashed_password):
        logger.info("Failed admin login", extra={"username": login_req.username})
        raise Unauthorized("Incorrect username or password.")
    return admin


def issue_access_token_for_admin(admin: models.Admin) -> Tuple[str, int]:
    """
    Create a JWT access token for the admin.

    Returns (token_string, expires_in_seconds).
    """
    expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(data={"sub": str(admin.id)}, expires_delta=expires_delta)
    return token, int(expires_delta.total_seconds())


def revoke_tokens(db: Session, *, admin: models.Admin) -> models.Admin:
    with atomic(db):
        admin.token_revoked_at = datetime.now(timezone.utc)
        db.add(admin)
    audit_services.log_event(
        db,
        actor_admin_id=admin.id,
        entity_type="accounts.admin",
        entity_id=str(admin.id),
        action="LOGOUT",
    )
    return admin


def change_credentials(
    db: Session,
    *,
    admin: models.Admin,
    payload: schemas.ChangeCredentialsRequest,
) -> models.Admin:
    new_username = _normalise_username(payload.new_username)
    if not new_username or not payload.new_password:
        raise InvalidInput("Missing fields")

    existing = get_admin_by_username(db, new_username)
    if existing is not None and existing.id != admin.id:
        raise Conflict("Username already taken")

    before = {"username": admin.username}
    try:
        with atomic(db):
            admin.username = new_username
            admin.hashed_password = get_password_hash(payload.new_password)
            db.add(admin)
    except IntegrityError:
        # Lost a race with another rename to the same username.
        raise Conflict("Username already taken")

    audit_services.log_event(
        db,
        actor_admin_id=admin.id,
        entity_type="accounts.admin",
        entity_id=str(admin.id),
        action="CREDENTIALS_CHANGED",
        before=before,
        after={"username": admin.username},
    )
    return admin
