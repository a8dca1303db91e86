from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from labstore.apps.audit import models as audit_models
from labstore.apps.audit import router as audit_router
from labstore.apps.audit import services as audit_services
from labstore.apps.inventory import schemas as inventory_schemas
from labstore.apps.inventory import services as inventory_services


def test_ledger_operations_write_audit_events(db_session, admin):
    component, _ = inventory_services.restock_component(
        db_session,
        payload=inventory_schemas.ComponentRestockRequest(name="Resistor", quantity=10),
        actor_admin_id=admin.id,
    )
    issue = inventory_services.create_issue(
        db_session,
        payload=inventory_schemas.IssueCreateRequest(
            student_name="Asha",
            usn="1AB20CS001",
            items=[inventory_schemas.IssueLine(component_id=component.id, quantity=3)],
        ),
        actor_admin_id=admin.id,
    )
    inventory_services.return_all(db_session, issue_id=issue.id, actor_admin_id=admin.id)

    events = audit_services.list_audit_events(db_session)
    assert {event.action for event in events} == {"CREATED", "RETURNED_ALL"}
    assert all(event.actor_admin_id == admin.id for event in events)

    component_events = audit_services.list_audit_events(
        db_session,
        entity_type="inventory.component",
        entity_id=str(component.id),
    )
    assert len(component_events) == 1
    assert component_events[0].after["total_quantity"] == 10

    issue_events = audit_router.list_audit_events(
        entity_type="inventory.issue",
        entity_id=str(issue.id),
        db=db_session,
        current_admin=admin,
    )
    assert [event.action for event in issue_events] == ["RETURNED_ALL", "CREATED"]


def test_return_all_with_nothing_outstanding_is_not_audited(db_session):
    component, _ = inventory_services.restock_component(
        db_session,
        payload=inventory_schemas.ComponentRestockRequest(name="LED", quantity=2),
    )
    issue = inventory_services.create_issue(
        db_session,
        payload=inventory_schemas.IssueCreateRequest(
            student_name="Ravi",
            usn="1AB20CS002",
            items=[inventory_schemas.IssueLine(component_id=component.id, quantity=2)],
        ),
    )
    inventory_services.return_all(db_session, issue_id=issue.id)
    count = db_session.query(audit_models.AuditEvent).count()

    inventory_services.return_all(db_session, issue_id=issue.id)

    assert db_session.query(audit_models.AuditEvent).count() == count


def test_log_event_failure_is_swallowed_and_rolled_back(db_session, monkeypatch, caplog):
    def _broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", _broken_commit)

    with caplog.at_level("WARNING", logger="labstore.apps.audit.services"):
        result = audit_services.log_event(
            db_session,
            actor_admin_id=None,
            entity_type="inventory.component",
            entity_id="1",
            action="RESTOCKED",
        )

    assert result is None
    assert "Failed to log audit event" in caplog.text
    monkeypatch.undo()
    assert db_session.query(audit_models.AuditEvent).count() == 0
