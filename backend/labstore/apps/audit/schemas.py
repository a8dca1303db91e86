from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuditEventRead(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    action: str
    actor_admin_id: Optional[int] = None
    occurred_at: datetime
    before: Optional[dict] = None
    after: Optional[dict] = None

    class Config:
        from_attributes = True
