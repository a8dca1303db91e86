# backend/labstore/apps/accounts/router.py

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from labstore.database import get_db
from labstore.security import get_current_admin

from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Exchange username + password for a bearer token.

    Send it back as `Authorization: Bearer <token>` on every other call.
    """
    admin = services.authenticate_admin(db, login_req=payload)
    token, expires_in = services.issue_access_token_for_admin(admin)
    return schemas.Token(access_token=token, expires_in=expires_in, admin=schemas.AdminRead.model_validate(admin))


@router.post("/logout", response_model=schemas.ActionResult)
def logout(
    db: Session = Depends(get_db),
    current_admin: models.Admin = Depends(get_current_admin),
):
    services.revoke_tokens(db, admin=current_admin)
    return schemas.ActionResult(message="Logged out")


@router.get("/me", response_model=schemas.AdminRead)
def read_me(current_admin: models.Admin = Depends(get_current_admin)):
    return current_admin


@router.post("/change-credentials", response_model=schemas.ActionResult)
def change_credentials(
    payload: schemas.ChangeCredentialsRequest,
    db: Session = Depends(get_db),
    current_admin: models.Admin = Depends(get_current_admin),
):
    services.change_credentials(db, admin=current_admin, payload=payload)
    return schemas.ActionResult(message="Credentials updated")
