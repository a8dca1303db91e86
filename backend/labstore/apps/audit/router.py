from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from labstore.apps.accounts import models as account_models
from labstore.database import get_read_db
from labstore.security import get_current_admin

from . import schemas, services

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/events", response_model=List[schemas.AuditEventRead])
def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_read_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    return services.list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        skip=skip,
        limit=limit,
    )
