"""create lab inventory tables

Revision ID: a1c0f3e2b9d4
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c0f3e2b9d4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token_revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_admins_id", "admins", ["id"], unique=False)
    op.create_index("ix_admins_username", "admins", ["username"], unique=True)

    op.create_table(
        "components",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("photo1", sa.Text(), nullable=True),
        sa.Column("photo2", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_quantity >= 0", name="ck_components_total_non_negative"),
        sa.CheckConstraint("available_quantity >= 0", name="ck_components_available_non_negative"),
        sa.CheckConstraint("available_quantity <= total_quantity", name="ck_components_available_le_total"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_components_id", "components", ["id"], unique=False)
    op.create_index("ix_components_name", "components", ["name"], unique=True)

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("usn", sa.String(length=32), nullable=False),
        sa.Column("student_name", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_students_id", "students", ["id"], unique=False)
    op.create_index("ix_students_usn", "students", ["usn"], unique=True)

    op.create_table(
        "issues",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("issue_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("issued_by_admin_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
        sa.ForeignKeyConstraint(["issued_by_admin_id"], ["admins.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_issues_id", "issues", ["id"], unique=False)
    op.create_index("ix_issues_student_id", "issues", ["student_id"], unique=False)
    op.create_index("ix_issues_issue_timestamp", "issues", ["issue_timestamp"], unique=False)
    op.create_index("ix_issues_student_time", "issues", ["student_id", "issue_timestamp"], unique=False)

    op.create_table(
        "issue_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("issue_id", sa.Integer(), nullable=False),
        sa.Column("component_id", sa.Integer(), nullable=True),
        sa.Column("component_name", sa.String(length=128), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("returned_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("quantity > 0", name="ck_issue_items_quantity_positive"),
        sa.CheckConstraint("returned_quantity >= 0", name="ck_issue_items_returned_non_negative"),
        sa.CheckConstraint("returned_quantity <= quantity", name="ck_issue_items_returned_le_quantity"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["component_id"], ["components.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_issue_items_id", "issue_items", ["id"], unique=False)
    op.create_index("ix_issue_items_issue_id", "issue_items", ["issue_id"], unique=False)
    op.create_index("ix_issue_items_component", "issue_items", ["component_id"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_admin_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["actor_admin_id"], ["admins.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"], unique=False)
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"], unique=False)
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"], unique=False)
    op.create_index("ix_audit_events_action", "audit_events", ["action"], unique=False)
    op.create_index("ix_audit_events_actor_admin_id", "audit_events", ["actor_admin_id"], unique=False)
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"], unique=False)
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")], unique=False)


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("issue_items")
    op.drop_table("issues")
    op.drop_table("students")
    op.drop_table("components")
    op.drop_table("admins")
