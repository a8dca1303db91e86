# backend/labstore/apps/accounts/models.py

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from ...database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Admin(Base):
    """
    Lab administrator.

    Tokens are stateless JWTs; `token_revoked_at` is the only server-side
    session state. Any token issued before it is rejected, which is how
    logout works without a process-wide session store.
    """

    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    token_revoked_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Admin id={self.id} username={self.username}>"
