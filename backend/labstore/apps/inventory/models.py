from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from labstore.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Component(Base):
    __tablename__ = "components"
    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="ck_components_total_non_negative"),
        CheckConstraint("available_quantity >= 0", name="ck_components_available_non_negative"),
        CheckConstraint("available_quantity <= total_quantity", name="ck_components_available_le_total"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False, unique=True, index=True)
    total_quantity = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)
    photo1 = Column(Text, nullable=True)
    photo2 = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def issued_quantity(self) -> int:
        return (self.total_quantity or 0) - (self.available_quantity or 0)

    def __repr__(self) -> str:
        return f"<Component id={self.id} name={self.name} available={self.available_quantity}/{self.total_quantity}>"


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    usn = Column(String(32), nullable=False, unique=True, index=True)
    student_name = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=True)

    issues = relationship("Issue", back_populates="student")


class Issue(Base):
    """
    One hand-out of components to one student. Never updated after creation;
    returns are tracked on its items.
    """

    __tablename__ = "issues"
    __table_args__ = (Index("ix_issues_student_time", "student_id", "issue_timestamp"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    issue_timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    issued_by_admin_id = Column(Integer, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)

    student = relationship("Student", back_populates="issues", lazy="joined")
    items = relationship(
        "IssueItem",
        back_populates="issue",
        lazy="selectin",
        order_by="IssueItem.id",
        cascade="all, delete-orphan",
    )


class IssueItem(Base):
    """
    One component line of an issue.

    `component_name` is a snapshot taken at issue time so settled history
    still reads correctly after the component is renamed or deleted
    (`component_id` is then NULL).
    """

    __tablename__ = "issue_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_issue_items_quantity_positive"),
        CheckConstraint("returned_quantity >= 0", name="ck_issue_items_returned_non_negative"),
        CheckConstraint("returned_quantity <= quantity", name="ck_issue_items_returned_le_quantity"),
        Index("ix_issue_items_component", "component_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id", ondelete="SET NULL"), nullable=True)
    component_name = Column(String(128), nullable=False)
    quantity = Column(Integer, nullable=False)
    returned_quantity = Column(Integer, nullable=False, default=0)

    issue = relationship("Issue", back_populates="items")
    component = relationship("Component")

    @property
    def remaining(self) -> int:
        return self.quantity - (self.returned_quantity or 0)

    @property
    def is_settled(self) -> bool:
        return self.remaining == 0
