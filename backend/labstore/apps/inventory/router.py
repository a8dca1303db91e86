from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from labstore.apps.accounts import models as account_models
from labstore.database import get_db, get_read_db
from labstore.security import get_current_admin

from . import schemas, services

# Paths match the lab's existing browser pages.
router = APIRouter(
    prefix="",
    tags=["inventory"],
    dependencies=[Depends(get_current_admin)],
)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@router.post("/add-component", response_model=schemas.ComponentResult)
def add_component(
    payload: schemas.ComponentRestockRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    component, created = services.restock_component(db, payload=payload, actor_admin_id=current_admin.id)
    message = "Component Added" if created else "Component quantity updated"
    return schemas.ComponentResult(message=message, component=schemas.ComponentRead.model_validate(component))


@router.post("/edit-component", response_model=schemas.ComponentResult)
def edit_component(
    payload: schemas.ComponentResizeRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    component = services.resize_component(db, payload=payload, actor_admin_id=current_admin.id)
    return schemas.ComponentResult(message="Component updated successfully", component=schemas.ComponentRead.model_validate(component))


@router.post("/rename-component", response_model=schemas.ComponentResult)
def rename_component(
    payload: schemas.ComponentRenameRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    component = services.rename_component(db, payload=payload, actor_admin_id=current_admin.id)
    return schemas.ComponentResult(message="Renamed successfully", component=schemas.ComponentRead.model_validate(component))


@router.post("/delete-component", response_model=schemas.DeleteResult)
def delete_component(
    payload: schemas.ComponentDeleteRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    services.delete_component(db, component_id=payload.id, actor_admin_id=current_admin.id)
    return schemas.DeleteResult(message="Component deleted successfully", id=payload.id)


@router.get("/components", response_model=List[schemas.ComponentRead])
def list_components(db: Session = Depends(get_read_db)):
    return services.list_components(db)


# ---------------------------------------------------------------------------
# Issues and returns
# ---------------------------------------------------------------------------


@router.post(
    "/create-issue",
    response_model=schemas.IssueResult,
    status_code=status.HTTP_201_CREATED,
)
def create_issue(
    payload: schemas.IssueCreateRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    issue = services.create_issue(db, payload=payload, actor_admin_id=current_admin.id)
    return schemas.IssueResult(message="Issue Created Successfully", issue=schemas.IssueRead.model_validate(issue))


@router.get("/issues/{issue_id}", response_model=schemas.IssueRead)
def read_issue(issue_id: int, db: Session = Depends(get_read_db)):
    return services.get_issue(db, issue_id=issue_id)


@router.post("/return-item", response_model=schemas.ReturnItemResult)
def return_item(
    payload: schemas.ReturnItemRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    item = services.return_item(db, payload=payload, actor_admin_id=current_admin.id)
    return schemas.ReturnItemResult(message="Return processed", item=schemas.IssueItemRead.model_validate(item))


@router.post("/return-all", response_model=schemas.ReturnAllResult)
def return_all(
    payload: schemas.ReturnAllRequest,
    db: Session = Depends(get_db),
    current_admin: account_models.Admin = Depends(get_current_admin),
):
    returned_units, settled_items = services.return_all(
        db,
        issue_id=payload.issue_id,
        actor_admin_id=current_admin.id,
    )
    message = "All items returned successfully" if settled_items else "Nothing outstanding on this issue"
    return schemas.ReturnAllResult(
        message=message,
        issue_id=payload.issue_id,
        returned_units=returned_units,
        settled_items=settled_items,
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@router.get("/transactions", response_model=List[schemas.TransactionRow])
def list_transactions(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_read_db),
):
    return services.list_transactions(db, skip=skip, limit=limit)


@router.get("/student/{usn}", response_model=List[schemas.StudentHistoryRow])
def student_history(usn: str, db: Session = Depends(get_read_db)):
    return services.student_history(db, usn=usn)


@router.get("/dashboard-summary", response_model=schemas.DashboardSummary)
def dashboard_summary(db: Session = Depends(get_read_db)):
    return services.dashboard_summary(db)
