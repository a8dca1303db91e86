from __future__ import annotations

import logging
from collections import OrderedDict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from labstore.apps.audit import services as audit_services
from labstore.database import atomic
from labstore.errors import (
    Conflict,
    EmptyRequest,
    HasActiveIssues,
    InsufficientStock,
    InvalidInput,
    InvalidReduction,
    NotFound,
    OverReturn,
    ServiceError,
    StorageError,
)

from . import models, schemas

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _ledger_transaction(db: Session, operation: str) -> Iterator[Session]:
    """
    One commit per ledger operation.

    Service errors pass through untouched (after rollback). Unique
    violations become Conflict; any other database failure is logged and
    surfaced as StorageError.
    """
    try:
        with atomic(db):
            yield db
    except ServiceError as exc:
        logger.info(
            "Rejected %s: %s",
            operation,
            exc.kind.value,
            extra={"operation": operation, "kind": exc.kind.value},
        )
        raise
    except IntegrityError as exc:
        logger.info("Integrity violation during %s", operation, extra={"operation": operation})
        raise Conflict(f"Conflicting change during {operation}; retry the request.") from exc
    except SQLAlchemyError as exc:
        logger.exception("Storage failure during %s", operation, extra={"operation": operation})
        raise StorageError(f"Storage failure during {operation}.") from exc


def _normalise_name(name: Optional[str]) -> str:
    return (name or "").strip()


def _get_component(db: Session, component_id: int) -> models.Component:
    component = (
        db.query(models.Component)
        .filter(models.Component.id == component_id)
        .populate_existing()
        .first()
    )
    if component is None:
        raise NotFound("Component not found")
    return component


def _get_component_by_name(db: Session, name: str) -> Optional[models.Component]:
    return (
        db.query(models.Component)
        .filter(models.Component.name == name)
        .populate_existing()
        .first()
    )


def _component_snapshot(component: models.Component) -> dict:
    return {
        "name": component.name,
        "total_quantity": component.total_quantity,
        "available_quantity": component.available_quantity,
    }


def _requested_by_component(lines: List[schemas.IssueLine]) -> "OrderedDict[int, int]":
    # Several lines may name the same component; they share its stock.
    requested: "OrderedDict[int, int]" = OrderedDict()
    for line in lines:
        requested[line.component_id] = requested.get(line.component_id, 0) + line.quantity
    return requested


def _upsert_student(db: Session, *, usn: str, student_name: str, phone: Optional[str]) -> models.Student:
    student = (
        db.query(models.Student)
        .filter(models.Student.usn == usn)
        .populate_existing()
        .first()
    )
    if student is None:
        student = models.Student(usn=usn, student_name=student_name, phone=phone)
        db.add(student)
    else:
        # Last submission wins, no merge.
        student.student_name = student_name
        student.phone = phone
    db.flush()
    return student


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


def _apply_restock(db: Session, *, name: str, payload: schemas.ComponentRestockRequest) -> Tuple[models.Component, bool]:
    component = _get_component_by_name(db, name)
    if component is not None:
        db.execute(
            update(models.Component)
            .where(models.Component.id == component.id)
            .values(
                total_quantity=models.Component.total_quantity + payload.quantity,
                available_quantity=models.Component.available_quantity + payload.quantity,
                # Photos only fill empty slots; stored ones are never replaced.
                photo1=func.coalesce(models.Component.photo1, payload.photo1 or None),
                photo2=func.coalesce(models.Component.photo2, payload.photo2 or None),
            )
            .execution_options(synchronize_session=False)
        )
        return component, False

    component = models.Component(
        name=name,
        total_quantity=payload.quantity,
        available_quantity=payload.quantity,
        photo1=payload.photo1 or None,
        photo2=payload.photo2 or None,
    )
    db.add(component)
    db.flush()
    return component, True


def restock_component(
    db: Session,
    *,
    payload: schemas.ComponentRestockRequest,
    actor_admin_id: Optional[int] = None,
) -> Tuple[models.Component, bool]:
    """
    Add stock under a component name.

    Existing names get `quantity` added to both total and available in a
    single UPDATE, and payload photos fill only empty photo slots; unknown
    names create the component. Returns (component, created).
    """
    name = _normalise_name(payload.name)
    if not name:
        raise InvalidInput("Component name is required.")
    if payload.quantity <= 0:
        raise InvalidInput("Quantity must be a positive integer.")

    try:
        with _ledger_transaction(db, "restock"):
            component, created = _apply_restock(db, name=name, payload=payload)
    except Conflict:
        # Another request created the same name between our lookup and insert.
        with _ledger_transaction(db, "restock"):
            component, created = _apply_restock(db, name=name, payload=payload)
    db.refresh(component)

    logger.info(
        "Restocked component",
        extra={"component_id": component.id, "quantity": payload.quantity, "created": created},
    )
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.component",
        entity_id=str(component.id),
        action="CREATED" if created else "RESTOCKED",
        after={**_component_snapshot(component), "added": payload.quantity},
    )
    return component, created


def resize_component(
    db: Session,
    *,
    payload: schemas.ComponentResizeRequest,
    actor_admin_id: Optional[int] = None,
) -> models.Component:
    """
    Set a new total, moving available by the same difference.

    Rejected with InvalidReduction when the new total is smaller than what
    is currently issued out.
    """
    if payload.new_total_quantity < 0:
        raise InvalidInput("new_total_quantity must not be negative.")

    with _ledger_transaction(db, "resize"):
        component = _get_component(db, payload.id)
        before = _component_snapshot(component)
        difference = payload.new_total_quantity - component.total_quantity
        if component.available_quantity + difference < 0:
            raise InvalidReduction(
                f"Cannot reduce below issued quantity ({component.issued_quantity} currently issued)."
            )

        delta = payload.new_total_quantity - models.Component.total_quantity
        result = db.execute(
            update(models.Component)
            .where(
                models.Component.id == component.id,
                models.Component.available_quantity + delta >= 0,
            )
            .values(
                total_quantity=payload.new_total_quantity,
                available_quantity=models.Component.available_quantity + delta,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidReduction("Cannot reduce below issued quantity.")
    db.refresh(component)

    logger.info(
        "Resized component",
        extra={"component_id": component.id, "new_total_quantity": payload.new_total_quantity},
    )
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.component",
        entity_id=str(component.id),
        action="RESIZED",
        before=before,
        after=_component_snapshot(component),
    )
    return component


def rename_component(
    db: Session,
    *,
    payload: schemas.ComponentRenameRequest,
    actor_admin_id: Optional[int] = None,
) -> models.Component:
    new_name = _normalise_name(payload.new_name)
    if not new_name:
        raise InvalidInput("New component name is required.")

    with _ledger_transaction(db, "rename"):
        component = _get_component(db, payload.id)
        old_name = component.name
        clash = _get_component_by_name(db, new_name)
        if clash is not None and clash.id != component.id:
            raise Conflict(f"A component named '{new_name}' already exists.")
        component.name = new_name
        db.flush()
    db.refresh(component)

    logger.info("Renamed component", extra={"component_id": component.id})
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.component",
        entity_id=str(component.id),
        action="RENAMED",
        before={"name": old_name},
        after={"name": component.name},
    )
    return component


def delete_component(
    db: Session,
    *,
    component_id: int,
    actor_admin_id: Optional[int] = None,
) -> None:
    """
    Delete a component once nothing of it is still out.

    Settled issue items keep their `component_name` snapshot and have
    `component_id` cleared, so history stays readable.
    """
    with _ledger_transaction(db, "delete-component"):
        # Lock the row first so a concurrent issue cannot slip an item in
        # between the active check and the delete.
        component = (
            db.query(models.Component)
            .filter(models.Component.id == component_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if component is None:
            raise NotFound("Component not found")

        active = (
            db.query(func.count(models.IssueItem.id))
            .filter(
                models.IssueItem.component_id == component_id,
                models.IssueItem.quantity > models.IssueItem.returned_quantity,
            )
            .scalar()
        )
        if active:
            raise HasActiveIssues("Cannot delete component with active issues")

        before = _component_snapshot(component)
        db.execute(
            update(models.IssueItem)
            .where(models.IssueItem.component_id == component_id)
            .values(component_id=None)
            .execution_options(synchronize_session=False)
        )
        db.delete(component)

    logger.info("Deleted component", extra={"component_id": component_id})
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.component",
        entity_id=str(component_id),
        action="DELETED",
        before=before,
    )


# ---------------------------------------------------------------------------
# Issues and returns
# ---------------------------------------------------------------------------


def create_issue(
    db: Session,
    *,
    payload: schemas.IssueCreateRequest,
    actor_admin_id: Optional[int] = None,
) -> models.Issue:
    """
    Hand out one or more components to a student, all or nothing.

    Every line is validated before anything is written; decrements are
    conditional (`available_quantity >= q`) and applied in component id
    order, so two concurrent issues can never both consume the same units.
    Any failed line rolls back the student upsert, the issue and all its
    items.
    """
    if not payload.items:
        raise EmptyRequest("No items provided")
    usn = payload.usn.strip()
    student_name = payload.student_name.strip()
    if not usn or not student_name:
        raise InvalidInput("student_name and usn are required.")
    phone = (payload.phone or "").strip() or None

    requested = _requested_by_component(payload.items)

    with _ledger_transaction(db, "create-issue"):
        student = _upsert_student(db, usn=usn, student_name=student_name, phone=phone)

        components: Dict[int, models.Component] = {
            component.id: component
            for component in db.query(models.Component)
            .filter(models.Component.id.in_(list(requested)))
            .populate_existing()
            .all()
        }
        for component_id, quantity in requested.items():
            component = components.get(component_id)
            if component is None or component.available_quantity < quantity:
                raise InsufficientStock(
                    f"Insufficient stock for component ID {component_id}",
                    component_id=component_id,
                )

        issue = models.Issue(student_id=student.id, issued_by_admin_id=actor_admin_id)
        db.add(issue)
        db.flush()

        for line in payload.items:
            db.add(
                models.IssueItem(
                    issue_id=issue.id,
                    component_id=line.component_id,
                    component_name=components[line.component_id].name,
                    quantity=line.quantity,
                    returned_quantity=0,
                )
            )

        for component_id in sorted(requested):
            quantity = requested[component_id]
            result = db.execute(
                update(models.Component)
                .where(
                    models.Component.id == component_id,
                    models.Component.available_quantity >= quantity,
                )
                .values(available_quantity=models.Component.available_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InsufficientStock(
                    f"Insufficient stock for component ID {component_id}",
                    component_id=component_id,
                )
        db.flush()

    db.refresh(issue)
    for component in components.values():
        db.refresh(component)

    logger.info(
        "Created issue",
        extra={"issue_id": issue.id, "student_id": student.id, "lines": len(payload.items)},
    )
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.issue",
        entity_id=str(issue.id),
        action="CREATED",
        after={
            "usn": usn,
            "items": [{"component_id": line.component_id, "quantity": line.quantity} for line in payload.items],
        },
    )
    return issue


def return_item(
    db: Session,
    *,
    payload: schemas.ReturnItemRequest,
    actor_admin_id: Optional[int] = None,
) -> models.IssueItem:
    """
    Return part (or all) of one issued line.

    The component credited is always the one stored on the item; a
    caller-supplied component_id is only checked for agreement.
    """
    if payload.return_quantity <= 0:
        raise InvalidInput("return_quantity must be a positive integer.")

    with _ledger_transaction(db, "return-item"):
        item = (
            db.query(models.IssueItem)
            .filter(models.IssueItem.id == payload.item_id)
            .populate_existing()
            .first()
        )
        if item is None:
            raise NotFound("Item not found")
        if payload.component_id is not None and payload.component_id != item.component_id:
            raise InvalidInput("component_id does not match the issued item.")
        if payload.return_quantity > item.remaining:
            raise OverReturn(f"Return exceeds remaining ({item.remaining} outstanding).")

        result = db.execute(
            update(models.IssueItem)
            .where(
                models.IssueItem.id == item.id,
                models.IssueItem.quantity - models.IssueItem.returned_quantity >= payload.return_quantity,
            )
            .values(returned_quantity=models.IssueItem.returned_quantity + payload.return_quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OverReturn("Return exceeds remaining.")

        if item.component_id is not None:
            db.execute(
                update(models.Component)
                .where(models.Component.id == item.component_id)
                .values(available_quantity=models.Component.available_quantity + payload.return_quantity)
                .execution_options(synchronize_session=False)
            )
    db.refresh(item)
    if item.component is not None:
        db.refresh(item.component)

    logger.info(
        "Returned issue item",
        extra={"item_id": item.id, "component_id": item.component_id, "quantity": payload.return_quantity},
    )
    audit_services.log_event(
        db,
        actor_admin_id=actor_admin_id,
        entity_type="inventory.issue_item",
        entity_id=str(item.id),
        action="RETURNED",
        after={"returned": payload.return_quantity, "remaining": item.remaining},
    )
    return item


def return_all(
    db: Session,
    *,
    issue_id: int,
    actor_admin_id: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Settle every outstanding line of an issue in one transaction.

    Already-settled lines are skipped, so calling this twice is the same
    as calling it once. Returns (units_returned, items_settled).
    """
    with _ledger_transaction(db, "return-all"):
        issue = db.query(models.Issue).filter(models.Issue.id == issue_id).first()
        if issue is None:
            raise NotFound("Issue not found")

        outstanding = (
            db.query(models.IssueItem)
            .filter(
                models.IssueItem.issue_id == issue_id,
                models.IssueItem.quantity > models.IssueItem.returned_quantity,
            )
            .order_by(models.IssueItem.id)
            .populate_existing()
            .with_for_update()
            .all()
        )

        returned_units = 0
        for item in outstanding:
            remaining = item.remaining
            result = db.execute(
                update(models.IssueItem)
                .where(
                    models.IssueItem.id == item.id,
                    models.IssueItem.returned_quantity == item.returned_quantity,
                )
                .values(returned_quantity=models.IssueItem.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict("Issue changed while returning; retry the request.")
            if item.component_id is not None:
                db.execute(
                    update(models.Component)
                    .where(models.Component.id == item.component_id)
                    .values(available_quantity=models.Component.available_quantity + remaining)
                    .execution_options(synchronize_session=False)
                )
            returned_units += remaining

    for item in outstanding:
        db.refresh(item)
        if item.component is not None:
            db.refresh(item.component)

    if outstanding:
        logger.info(
            "Returned all items",
            extra={"issue_id": issue_id, "items": len(outstanding), "quantity": returned_units},
        )
        audit_services.log_event(
            db,
            actor_admin_id=actor_admin_id,
            entity_type="inventory.issue",
            entity_id=str(issue_id),
            action="RETURNED_ALL",
            after={"returned": returned_units, "items": len(outstanding)},
        )
    return returned_units, len(outstanding)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_components(db: Session) -> List[models.Component]:
    return db.query(models.Component).order_by(models.Component.name).all()


def get_issue(db: Session, *, issue_id: int) -> models.Issue:
    issue = db.query(models.Issue).filter(models.Issue.id == issue_id).first()
    if issue is None:
        raise NotFound("Issue not found")
    return issue


def _history_query(db: Session):
    remaining = (models.IssueItem.quantity - models.IssueItem.returned_quantity).label("remaining")
    return (
        db.query(
            models.Issue.id.label("issue_id"),
            models.Issue.issue_timestamp,
            models.Student.student_name,
            models.Student.usn,
            models.Student.phone,
            models.IssueItem.id.label("item_id"),
            models.IssueItem.component_id,
            func.coalesce(models.Component.name, models.IssueItem.component_name).label("component_name"),
            models.IssueItem.quantity,
            models.IssueItem.returned_quantity,
            remaining,
        )
        .join(models.Student, models.Issue.student_id == models.Student.id)
        .join(models.IssueItem, models.IssueItem.issue_id == models.Issue.id)
        .outerjoin(models.Component, models.IssueItem.component_id == models.Component.id)
        .order_by(
            models.Issue.issue_timestamp.desc(),
            models.Issue.id.desc(),
            models.IssueItem.id,
        )
    )


def list_transactions(db: Session, *, skip: int = 0, limit: int = 500) -> List[schemas.TransactionRow]:
    if skip < 0 or limit < 1:
        raise InvalidInput("skip must be >= 0 and limit >= 1.")
    rows = _history_query(db).offset(skip).limit(limit).all()
    return [schemas.TransactionRow(**row._asdict()) for row in rows]


def student_history(db: Session, *, usn: str) -> List[schemas.StudentHistoryRow]:
    rows = _history_query(db).filter(models.Student.usn == usn.strip()).all()
    return [
        schemas.StudentHistoryRow(
            issue_id=row.issue_id,
            issue_timestamp=row.issue_timestamp,
            item_id=row.item_id,
            component_name=row.component_name,
            quantity=row.quantity,
            returned_quantity=row.returned_quantity,
            remaining=row.remaining,
        )
        for row in rows
    ]


def dashboard_summary(db: Session) -> schemas.DashboardSummary:
    total_components = db.query(func.count(models.Component.id)).scalar() or 0
    total_out = (
        db.query(
            func.coalesce(
                func.sum(models.IssueItem.quantity - models.IssueItem.returned_quantity),
                0,
            )
        ).scalar()
        or 0
    )
    total_students = db.query(func.count(models.Student.id)).scalar() or 0
    return schemas.DashboardSummary(
        total_components=int(total_components),
        total_out=int(total_out),
        total_students=int(total_students),
    )
