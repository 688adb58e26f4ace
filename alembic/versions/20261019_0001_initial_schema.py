"""initial report desk schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role = postgresql.ENUM("staff", "hr", "hod", "admin", name="user_role", create_type=False)
report_type = postgresql.ENUM("daily", "weekly", "monthly", "annual", name="report_type", create_type=False)
report_status = postgresql.ENUM(
    "draft", "submitted", "reviewed", "locked", name="report_status", create_type=False
)
deadline_type = postgresql.ENUM("daily", "weekly", "monthly", name="deadline_type", create_type=False)
notification_type = postgresql.ENUM(
    "reminder", "feedback", "lock", "unlock", "deadline", "system", name="notification_type", create_type=False
)


def upgrade() -> None:
    for enum_type in (user_role, report_type, report_status, deadline_type, notification_type):
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_units_department_id", "units", ["department_id"])

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("external_subject", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("role", user_role, nullable=False, server_default="staff"),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("unit_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_department_id", "users", ["department_id"])
    op.create_index("ix_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", report_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", postgresql.JSONB(), nullable=True),
        sa.Column("status", report_status, nullable=False, server_default="draft"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("locked_by_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(is_locked AND status = 'locked' AND locked_by_id IS NOT NULL AND locked_at IS NOT NULL) "
            "OR (NOT is_locked AND status <> 'locked' AND locked_by_id IS NULL AND locked_at IS NULL)",
            name="ck_reports_lock_matches_status",
        ),
    )
    op.create_index(
        "uq_reports_owner_daily_date",
        "reports",
        ["owner_id", "date"],
        unique=True,
        postgresql_where=sa.text("type = 'daily'"),
    )
    op.create_index("ix_reports_owner_date", "reports", ["owner_id", "date"])
    op.create_index("ix_reports_status_deadline", "reports", ["status", "deadline"])

    op.create_table(
        "report_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "report_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", postgresql.JSONB(), nullable=True),
        sa.Column("edited_by_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("edit_reason", sa.String(length=1000), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_report_versions_report_id", "report_versions", ["report_id"])

    op.create_table(
        "comments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "report_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_comments_report_created", "comments", ["report_id", "created_at"])

    op.create_table(
        "compiled_reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", report_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", postgresql.JSONB(), nullable=False),
        sa.Column("date_range_start", sa.Date(), nullable=False),
        sa.Column("date_range_end", sa.Date(), nullable=False),
        sa.Column("included_reports", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("status", report_status, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("type <> 'daily'", name="ck_compiled_reports_type_not_daily"),
        sa.CheckConstraint("date_range_end >= date_range_start", name="ck_compiled_reports_range_order"),
        sa.UniqueConstraint(
            "owner_id",
            "type",
            "date_range_start",
            "date_range_end",
            name="uq_compiled_reports_owner_type_range",
        ),
    )
    op.create_index("ix_compiled_reports_owner_type", "compiled_reports", ["owner_id", "type"])

    op.create_table(
        "deadlines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("unit_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("type", deadline_type, nullable=False),
        sa.Column("deadline_time", sa.String(length=5), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(type = 'weekly' AND day_of_week IS NOT NULL) OR (type <> 'weekly' AND day_of_week IS NULL)",
            name="ck_deadlines_day_of_week_matches_type",
        ),
        sa.CheckConstraint(
            "(type = 'monthly' AND day_of_month IS NOT NULL) OR (type <> 'monthly' AND day_of_month IS NULL)",
            name="ck_deadlines_day_of_month_matches_type",
        ),
        sa.CheckConstraint("day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)", name="ck_deadlines_dow"),
        sa.CheckConstraint(
            "day_of_month IS NULL OR (day_of_month >= 1 AND day_of_month <= 31)", name="ck_deadlines_dom"
        ),
    )
    op.create_index("ix_deadlines_scope", "deadlines", ["department_id", "unit_id"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.String(length=2000), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "related_report_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("reports.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_recipient_created", "notifications", ["recipient_id", "created_at"])
    op.create_index("ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_recipient_unread", table_name="notifications")
    op.drop_index("ix_notifications_recipient_created", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_deadlines_scope", table_name="deadlines")
    op.drop_table("deadlines")

    op.drop_index("ix_compiled_reports_owner_type", table_name="compiled_reports")
    op.drop_table("compiled_reports")

    op.drop_index("ix_comments_report_created", table_name="comments")
    op.drop_table("comments")

    op.drop_index("ix_report_versions_report_id", table_name="report_versions")
    op.drop_table("report_versions")

    op.drop_index("ix_reports_status_deadline", table_name="reports")
    op.drop_index("ix_reports_owner_date", table_name="reports")
    op.drop_index("uq_reports_owner_daily_date", table_name="reports")
    op.drop_table("reports")

    op.drop_index("ix_users_role_active", table_name="users")
    op.drop_index("ix_users_department_id", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_units_department_id", table_name="units")
    op.drop_table("units")
    op.drop_table("departments")

    for enum_type in (notification_type, deadline_type, report_status, report_type, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
