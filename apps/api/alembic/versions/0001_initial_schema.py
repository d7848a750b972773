"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-01 09:00:00.000000

This migration:
1. Creates the enum types
2. Creates agencies, users and every tenant table (agency_id, ON DELETE CASCADE)
3. Enables Row-Level Security on tenant tables

RLS policies compare agency_id with the transaction-local setting
app.current_agency_id. When the setting is empty (login, background jobs
before they pick an agency) rows are not filtered; application queries
always filter by agency_id themselves.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUMS = {
    "user_role": ("agency_admin", "agency_user"),
    "user_status": ("active", "inactive", "suspended"),
    "gst_status": ("included", "excluded"),
    "visa_status": ("in_process", "approved", "denied", "expired"),
    "document_type": ("offer_letter", "passport", "visa", "other"),
    "enrollment_status": ("active", "completed", "cancelled"),
    "payment_plan_status": ("active", "completed", "cancelled"),
    "payment_frequency": ("monthly", "quarterly", "custom"),
    "installment_status": ("draft", "pending", "paid", "partial", "overdue", "cancelled"),
    "activity_entity_type": (
        "student",
        "enrollment",
        "payment_plan",
        "installment",
        "payment",
        "college",
    ),
    "activity_action": (
        "created",
        "updated",
        "deleted",
        "recorded",
        "marked_overdue",
        "imported",
    ),
}

TENANT_TABLES = (
    "users",
    "colleges",
    "branches",
    "college_contacts",
    "college_notes",
    "students",
    "student_notes",
    "student_documents",
    "enrollments",
    "payment_plans",
    "installments",
    "activity_log",
)


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _base_columns() -> list[sa.Column]:
    """id and timestamps (from BaseModel)."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _agency_column() -> sa.Column:
    return sa.Column(
        "agency_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _fk(column: str, target: str, ondelete: str, nullable: bool = False, index: bool = True):
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
        index=index,
    )


def _money(name: str, nullable: bool = False, default: str | None = "0") -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(12, 2),
        nullable=nullable,
        server_default=default if not nullable else None,
    )


def upgrade() -> None:
    """Create the Pleeno schema."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "agencies",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="AUD"),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="Australia/Brisbane"),
        sa.Column("overdue_cutoff_time", sa.Time(), nullable=False, server_default="17:00:00"),
        sa.Column("due_soon_threshold_days", sa.Integer(), nullable=False, server_default="4"),
    )

    op.create_table(
        "users",
        *_base_columns(),
        _agency_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="agency_user"),
        sa.Column("status", _enum("user_status"), nullable=False, server_default="active"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Colleges
    op.create_table(
        "colleges",
        *_base_columns(),
        _agency_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("default_commission_rate_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("gst_status", _enum("gst_status"), nullable=False, server_default="included"),
        sa.Column("contract_expiration_date", sa.Date(), nullable=True),
        sa.UniqueConstraint("agency_id", "name", name="uq_colleges_agency_name"),
        sa.CheckConstraint(
            "default_commission_rate_percent IS NULL OR "
            "(default_commission_rate_percent >= 0 AND default_commission_rate_percent <= 100)",
            name="ck_colleges_commission_rate",
        ),
    )

    op.create_table(
        "branches",
        *_base_columns(),
        _agency_column(),
        _fk("college_id", "colleges.id", "CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("commission_rate_percent", sa.Numeric(5, 2), nullable=True),
        sa.CheckConstraint(
            "commission_rate_percent IS NULL OR "
            "(commission_rate_percent >= 0 AND commission_rate_percent <= 100)",
            name="ck_branches_commission_rate",
        ),
    )

    op.create_table(
        "college_contacts",
        *_base_columns(),
        _agency_column(),
        _fk("college_id", "colleges.id", "CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role_department", sa.String(255), nullable=True),
        sa.Column("position_title", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
    )

    op.create_table(
        "college_notes",
        *_base_columns(),
        _agency_column(),
        _fk("college_id", "colleges.id", "CASCADE"),
        _fk("user_id", "users.id", "SET NULL", nullable=True, index=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "char_length(content) <= 2000", name="ck_college_notes_content_length"
        ),
    )

    # Students
    op.create_table(
        "students",
        *_base_columns(),
        _agency_column(),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("passport_number", sa.String(50), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("nationality", sa.String(100), nullable=True),
        sa.Column("visa_status", _enum("visa_status"), nullable=True),
        sa.UniqueConstraint(
            "agency_id", "passport_number", name="uq_students_agency_passport"
        ),
    )
    op.create_index("ix_students_agency_full_name", "students", ["agency_id", "full_name"])

    op.create_table(
        "student_notes",
        *_base_columns(),
        _agency_column(),
        _fk("student_id", "students.id", "CASCADE"),
        _fk("user_id", "users.id", "SET NULL", nullable=True, index=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "char_length(content) <= 2000", name="ck_student_notes_content_length"
        ),
    )

    op.create_table(
        "student_documents",
        *_base_columns(),
        _agency_column(),
        _fk("student_id", "students.id", "CASCADE"),
        sa.Column("document_type", _enum("document_type"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=True),
        _fk("uploaded_by", "users.id", "SET NULL", nullable=True, index=False),
    )

    op.create_table(
        "enrollments",
        *_base_columns(),
        _agency_column(),
        _fk("student_id", "students.id", "CASCADE"),
        _fk("branch_id", "branches.id", "RESTRICT"),
        sa.Column("program_name", sa.String(255), nullable=False),
        sa.Column(
            "status", _enum("enrollment_status"), nullable=False, server_default="active"
        ),
        _fk(
            "offer_letter_document_id",
            "student_documents.id",
            "SET NULL",
            nullable=True,
            index=False,
        ),
        sa.UniqueConstraint(
            "student_id",
            "branch_id",
            "program_name",
            name="uq_enrollments_student_branch_program",
        ),
    )

    # Payments
    op.create_table(
        "payment_plans",
        *_base_columns(),
        _agency_column(),
        _fk("enrollment_id", "enrollments.id", "CASCADE"),
        _money("total_amount", default=None),
        sa.Column("currency", sa.String(3), nullable=False, server_default="AUD"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column(
            "status", _enum("payment_plan_status"), nullable=False, server_default="active"
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("commission_rate_percent", sa.Numeric(5, 2), nullable=False),
        _money("expected_commission"),
        _money("earned_commission"),
        sa.Column("gst_inclusive", sa.Boolean(), nullable=False, server_default="false"),
        _money("materials_cost"),
        _money("admin_fees"),
        _money("other_fees"),
        _money("initial_payment_amount"),
        sa.Column("initial_payment_due_date", sa.Date(), nullable=True),
        sa.Column("initial_payment_paid", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("number_of_installments", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "payment_frequency",
            _enum("payment_frequency"),
            nullable=False,
            server_default="monthly",
        ),
        sa.Column("first_college_due_date", sa.Date(), nullable=True),
        sa.Column("student_lead_time_days", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("total_amount >= 0", name="ck_payment_plans_total_amount"),
        sa.CheckConstraint(
            "commission_rate_percent >= 0 AND commission_rate_percent <= 100",
            name="ck_payment_plans_commission_rate",
        ),
        sa.CheckConstraint(
            "materials_cost >= 0 AND admin_fees >= 0 AND other_fees >= 0",
            name="ck_payment_plans_fees",
        ),
        sa.CheckConstraint("number_of_installments > 0", name="ck_payment_plans_installments"),
        sa.CheckConstraint("student_lead_time_days >= 0", name="ck_payment_plans_lead_time"),
    )
    op.create_index("ix_payment_plans_agency_status", "payment_plans", ["agency_id", "status"])

    op.create_table(
        "installments",
        *_base_columns(),
        _agency_column(),
        _fk("payment_plan_id", "payment_plans.id", "CASCADE"),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("is_initial_payment", sa.Boolean(), nullable=False, server_default="false"),
        _money("amount", default=None),
        sa.Column("generates_commission", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("student_due_date", sa.Date(), nullable=True),
        sa.Column("college_due_date", sa.Date(), nullable=True),
        sa.Column(
            "status", _enum("installment_status"), nullable=False, server_default="pending"
        ),
        sa.Column("paid_date", sa.Date(), nullable=True),
        _money("paid_amount", nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        sa.Column("last_notified_date", sa.Date(), nullable=True),
        sa.UniqueConstraint(
            "payment_plan_id", "installment_number", name="uq_installments_plan_number"
        ),
        sa.CheckConstraint("amount > 0", name="ck_installments_amount"),
        sa.CheckConstraint("installment_number >= 0", name="ck_installments_number"),
        sa.CheckConstraint(
            "paid_amount IS NULL OR paid_amount >= 0", name="ck_installments_paid_amount"
        ),
    )
    op.create_index(
        "ix_installments_agency_status_due",
        "installments",
        ["agency_id", "status", "student_due_date"],
    )

    # Activity log
    op.create_table(
        "activity_log",
        *_base_columns(),
        _agency_column(),
        _fk("user_id", "users.id", "SET NULL", nullable=True, index=False),
        sa.Column("entity_type", _enum("activity_entity_type"), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", _enum("activity_action"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    )
    op.create_index(
        "ix_activity_log_agency_created", "activity_log", ["agency_id", "created_at"]
    )
    op.create_index("ix_activity_log_entity", "activity_log", ["entity_type", "entity_id"])

    # Row-Level Security
    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"""
            CREATE POLICY {table}_agency_isolation ON {table}
            USING (
                coalesce(current_setting('app.current_agency_id', true), '') = ''
                OR agency_id = current_setting('app.current_agency_id', true)::uuid
            )
            """
        )


def downgrade() -> None:
    """Drop the Pleeno schema."""
    for table in reversed(TENANT_TABLES):
        op.execute(f"DROP POLICY IF EXISTS {table}_agency_isolation ON {table}")

    for table in (
        "activity_log",
        "installments",
        "payment_plans",
        "enrollments",
        "student_documents",
        "student_notes",
        "students",
        "college_notes",
        "college_contacts",
        "branches",
        "colleges",
        "users",
        "agencies",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
