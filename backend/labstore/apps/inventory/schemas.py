from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ComponentRestockRequest(BaseModel):
    name: str = Field(..., max_length=128)
    quantity: int = Field(..., gt=0)
    # On an existing name these only fill photo slots that are still empty.
    photo1: Optional[str] = None
    photo2: Optional[str] = None


class ComponentResizeRequest(BaseModel):
    id: int
    new_total_quantity: int = Field(..., ge=0)


class ComponentRenameRequest(BaseModel):
    id: int
    new_name: str = Field(..., max_length=128)


class ComponentDeleteRequest(BaseModel):
    id: int


class ComponentRead(BaseModel):
    id: int
    name: str
    total_quantity: int
    available_quantity: int
    photo1: Optional[str] = None
    photo2: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class IssueLine(BaseModel):
    component_id: int
    quantity: int = Field(..., gt=0)


class IssueCreateRequest(BaseModel):
    student_name: str = Field(..., max_length=128)
    usn: str = Field(..., max_length=32)
    phone: Optional[str] = Field(default=None, max_length=32)
    items: List[IssueLine] = Field(default_factory=list)


class IssueItemRead(BaseModel):
    id: int
    issue_id: int
    component_id: Optional[int] = None
    component_name: str
    quantity: int
    returned_quantity: int
    remaining: int

    class Config:
        from_attributes = True


class StudentRead(BaseModel):
    id: int
    usn: str
    student_name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class IssueRead(BaseModel):
    id: int
    student: StudentRead
    issue_timestamp: datetime
    issued_by_admin_id: Optional[int] = None
    items: List[IssueItemRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ReturnItemRequest(BaseModel):
    item_id: int
    return_quantity: int = Field(..., gt=0)
    # Accepted for older clients; the stored item decides the component.
    component_id: Optional[int] = None


class ReturnAllRequest(BaseModel):
    issue_id: int


# ---------------------------------------------------------------------------
# Tagged success results
# ---------------------------------------------------------------------------


class ComponentResult(BaseModel):
    success: bool = True
    message: str
    component: ComponentRead


class IssueResult(BaseModel):
    success: bool = True
    message: str
    issue: IssueRead


class ReturnItemResult(BaseModel):
    success: bool = True
    message: str
    item: IssueItemRead


class ReturnAllResult(BaseModel):
    success: bool = True
    message: str
    issue_id: int
    returned_units: int
    settled_items: int


class DeleteResult(BaseModel):
    success: bool = True
    message: str
    id: int


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TransactionRow(BaseModel):
    issue_id: int
    issue_timestamp: datetime
    student_name: str
    usn: str
    phone: Optional[str] = None
    item_id: int
    component_id: Optional[int] = None
    component_name: str
    quantity: int
    returned_quantity: int
    remaining: int


class StudentHistoryRow(BaseModel):
    issue_id: int
    issue_timestamp: datetime
    item_id: int
    component_name: str
    quantity: int
    returned_quantity: int
    remaining: int


class DashboardSummary(BaseModel):
    total_components: int
    total_out: int
    total_students: int
