from __future__ import annotations

import pytest

from labstore.apps.inventory import router as inventory_router
from labstore.apps.inventory import schemas as inventory_schemas
from labstore.apps.audit import models as audit_models
from labstore.errors import HasActiveIssues, InsufficientStock


def test_inventory_routes_are_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in inventory_router.router.routes}
    expected = {
        ("/add-component", ("POST",)),
        ("/edit-component", ("POST",)),
        ("/rename-component", ("POST",)),
        ("/delete-component", ("POST",)),
        ("/components", ("GET",)),
        ("/create-issue", ("POST",)),
        ("/issues/{issue_id}", ("GET",)),
        ("/return-item", ("POST",)),
        ("/return-all", ("POST",)),
        ("/transactions", ("GET",)),
        ("/student/{usn}", ("GET",)),
        ("/dashboard-summary", ("GET",)),
    }
    assert expected <= paths


def test_add_component_reports_created_then_updated(db_session, admin):
    created = inventory_router.add_component(
        payload=inventory_schemas.ComponentRestockRequest(name="Resistor", quantity=100),
        db=db_session,
        current_admin=admin,
    )
    assert created.success is True
    assert created.message == "Component Added"
    assert created.component.available_quantity == 100

    updated = inventory_router.add_component(
        payload=inventory_schemas.ComponentRestockRequest(name="Resistor", quantity=20),
        db=db_session,
        current_admin=admin,
    )
    assert updated.message == "Component quantity updated"
    assert (updated.component.total_quantity, updated.component.available_quantity) == (120, 120)


def test_issue_and_return_flow_through_router(db_session, admin):
    component = inventory_router.add_component(
        payload=inventory_schemas.ComponentRestockRequest(name="LED", quantity=10),
        db=db_session,
        current_admin=admin,
    ).component

    issued = inventory_router.create_issue(
        payload=inventory_schemas.IssueCreateRequest(
            student_name="Asha",
            usn="1AB20CS001",
            phone="9999999999",
            items=[inventory_schemas.IssueLine(component_id=component.id, quantity=4)],
        ),
        db=db_session,
        current_admin=admin,
    )
    assert issued.message == "Issue Created Successfully"
    assert issued.issue.issued_by_admin_id == admin.id
    assert issued.issue.student.usn == "1AB20CS001"
    item = issued.issue.items[0]
    assert (item.component_name, item.quantity, item.remaining) == ("LED", 4, 4)

    with pytest.raises(HasActiveIssues):
        inventory_router.delete_component(
            payload=inventory_schemas.ComponentDeleteRequest(id=component.id),
            db=db_session,
            current_admin=admin,
        )

    partial = inventory_router.return_item(
        payload=inventory_schemas.ReturnItemRequest(item_id=item.id, return_quantity=1),
        db=db_session,
        current_admin=admin,
    )
    assert partial.message == "Return processed"
    assert partial.item.remaining == 3

    settled = inventory_router.return_all(
        payload=inventory_schemas.ReturnAllRequest(issue_id=issued.issue.id),
        db=db_session,
        current_admin=admin,
    )
    assert settled.message == "All items returned successfully"
    assert (settled.returned_units, settled.settled_items) == (3, 1)

    again = inventory_router.return_all(
        payload=inventory_schemas.ReturnAllRequest(issue_id=issued.issue.id),
        db=db_session,
        current_admin=admin,
    )
    assert again.message == "Nothing outstanding on this issue"
    assert (again.returned_units, again.settled_items) == (0, 0)

    deleted = inventory_router.delete_component(
        payload=inventory_schemas.ComponentDeleteRequest(id=component.id),
        db=db_session,
        current_admin=admin,
    )
    assert (deleted.success, deleted.id) == (True, component.id)
    assert inventory_router.list_components(db=db_session) == []

    history = inventory_router.student_history(usn="1AB20CS001", db=db_session)
    assert [row.component_name for row in history] == ["LED"]
    assert inventory_router.dashboard_summary(db=db_session).total_out == 0


def test_create_issue_rejection_leaves_no_audit_trail(db_session, admin):
    component = inventory_router.add_component(
        payload=inventory_schemas.ComponentRestockRequest(name="Servo", quantity=1),
        db=db_session,
        current_admin=admin,
    ).component
    events_before = db_session.query(audit_models.AuditEvent).count()

    with pytest.raises(InsufficientStock):
        inventory_router.create_issue(
            payload=inventory_schemas.IssueCreateRequest(
                student_name="Ravi",
                usn="1AB20CS002",
                items=[inventory_schemas.IssueLine(component_id=component.id, quantity=2)],
            ),
            db=db_session,
            current_admin=admin,
        )

    assert db_session.query(audit_models.AuditEvent).count() == events_before


def test_edit_and_rename_messages(db_session, admin):
    component = inventory_router.add_component(
        payload=inventory_schemas.ComponentRestockRequest(name="Relay", quantity=5),
        db=db_session,
        current_admin=admin,
    ).component

    edited = inventory_router.edit_component(
        payload=inventory_schemas.ComponentResizeRequest(id=component.id, new_total_quantity=8),
        db=db_session,
        current_admin=admin,
    )
    assert edited.message == "Component updated successfully"
    assert (edited.component.total_quantity, edited.component.available_quantity) == (8, 8)

    renamed = inventory_router.rename_component(
        payload=inventory_schemas.ComponentRenameRequest(id=component.id, new_name="5V Relay"),
        db=db_session,
        current_admin=admin,
    )
    assert renamed.message == "Renamed successfully"
    assert renamed.component.name == "5V Relay"
