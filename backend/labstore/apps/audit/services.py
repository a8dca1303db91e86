from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    *,
    actor_admin_id: Optional[int],
    entity_type: str,
    entity_id: str,
    action: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> Optional[models.AuditEvent]:
    """
    Best-effort audit event logger.

    Called after the audited change has committed, in its own commit.
    A failure here is logged and rolled back; the caller carries on.
    """
    event = models.AuditEvent(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_admin_id=actor_admin_id,
        before=before,
        after=after,
    )
    try:
        db.add(event)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Failed to log audit event",
            extra={"entity_type": entity_type, "entity_id": entity_id, "action": action},
        )
        return None
    return event


def list_audit_events(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.AuditEvent]:
    query = db.query(models.AuditEvent)
    if entity_type:
        query = query.filter(models.AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    return (
        query.order_by(models.AuditEvent.occurred_at.desc(), models.AuditEvent.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
