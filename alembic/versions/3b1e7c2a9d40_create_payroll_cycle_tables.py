"""create payroll cycle tables

Revision ID: 3b1e7c2a9d40
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3b1e7c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "payroll_cycle_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cycle_type", sa.String(), nullable=False),
        sa.Column("from_date", sa.Date(), nullable=False),
        sa.Column("to_date", sa.Date(), nullable=False),
        sa.Column("check_date", sa.Date(), nullable=False),
        sa.Column("actual_check_date", sa.Date(), nullable=False),
        sa.Column("second_from_date", sa.Date(), nullable=True),
        sa.Column("second_to_date", sa.Date(), nullable=True),
        sa.Column("second_check_date", sa.Date(), nullable=True),
        sa.Column("second_actual_check_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("company_id", "name", name="uq_payroll_cycle_settings_company_name"),
        sa.CheckConstraint(
            "cycle_type IN ('Weekly', 'BiWeekly', 'SemiMonthly', 'Monthly')",
            name="ck_payroll_cycle_settings_cycle_type_valid",
        ),
        sa.CheckConstraint("from_date <= to_date", name="ck_payroll_cycle_settings_from_before_to"),
        sa.CheckConstraint(
            "(cycle_type = 'SemiMonthly' AND second_from_date IS NOT NULL AND second_to_date IS NOT NULL "
            "AND second_check_date IS NOT NULL AND second_actual_check_date IS NOT NULL) OR "
            "(cycle_type <> 'SemiMonthly' AND second_from_date IS NULL AND second_to_date IS NULL "
            "AND second_check_date IS NULL AND second_actual_check_date IS NULL)",
            name="ck_payroll_cycle_settings_second_half_only_semimonthly",
        ),
    )
    op.create_index("ix_payroll_cycle_settings_id", "payroll_cycle_settings", ["id"], unique=False)
    op.create_index("ix_payroll_cycle_settings_company_id", "payroll_cycle_settings", ["company_id"], unique=False)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("standard_pay_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hours_worked", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("payroll_settings_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["payroll_settings_id"], ["payroll_cycle_settings.id"], ondelete="SET NULL"),
        sa.CheckConstraint("hours_worked >= 0", name="ck_employees_hours_worked_nonnegative"),
        sa.CheckConstraint("standard_pay_cents >= 0", name="ck_employees_standard_pay_nonnegative"),
    )
    op.create_index("ix_employees_id", "employees", ["id"], unique=False)
    op.create_index("ix_employees_company_id", "employees", ["company_id"], unique=False)
    op.create_index("ix_employees_payroll_settings_id", "employees", ["payroll_settings_id"], unique=False)

    op.create_table(
        "pay_period",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("settings_id", sa.Integer(), nullable=False),
        sa.Column("from_date", sa.Date(), nullable=False),
        sa.Column("to_date", sa.Date(), nullable=False),
        sa.Column("check_date", sa.Date(), nullable=False),
        sa.Column("actual_check_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="YetToGenerate"),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["settings_id"], ["payroll_cycle_settings.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("settings_id", "from_date", name="uq_pay_period_settings_from_date"),
        sa.CheckConstraint("from_date <= to_date", name="ck_pay_period_from_before_to"),
        sa.CheckConstraint(
            "status IN ('YetToGenerate', 'Drafted', 'Submitted', 'Skipped')",
            name="ck_pay_period_status_valid",
        ),
        sa.CheckConstraint(
            "(status IN ('Submitted', 'Skipped') AND resolved_at IS NOT NULL) OR "
            "(status IN ('YetToGenerate', 'Drafted') AND resolved_at IS NULL)",
            name="ck_pay_period_resolved_at_matches_status",
        ),
    )
    op.create_index("ix_pay_period_company_id", "pay_period", ["company_id"], unique=False)
    op.create_index("ix_pay_period_settings_id", "pay_period", ["settings_id"], unique=False)

    op.create_table(
        "payroll_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("period_id", sa.String(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=True),
        sa.Column("rate_cents", sa.Integer(), nullable=True),
        sa.Column("gross_pay_cents", sa.Integer(), nullable=False),
        sa.Column("timesheet_approval_pending", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payroll_raised", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("meta", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["period_id"], ["pay_period.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("gross_pay_cents >= 0", name="ck_payroll_items_gross_pay_nonnegative"),
        sa.CheckConstraint("hours IS NULL OR hours >= 0", name="ck_payroll_items_hours_nonnegative"),
    )
    op.create_index("ix_payroll_items_company_id", "payroll_items", ["company_id"], unique=False)
    op.create_index("ix_payroll_items_period_id", "payroll_items", ["period_id"], unique=False)
    op.create_index("ix_payroll_items_employee_id", "payroll_items", ["employee_id"], unique=False)

    op.create_table(
        "payment_details",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("period_id", sa.String(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("worked_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount_paid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credited_expense_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("debited_expense_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("balance_delta_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("applied_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("existing_balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_finalize", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comments", sa.String(length=100), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["period_id"], ["pay_period.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("period_id", "employee_id", name="uq_payment_details_period_employee"),
        sa.CheckConstraint("amount_paid_cents >= 0", name="ck_payment_details_amount_paid_nonnegative"),
        sa.CheckConstraint("credited_expense_cents >= 0", name="ck_payment_details_credited_nonnegative"),
        sa.CheckConstraint("debited_expense_cents >= 0", name="ck_payment_details_debited_nonnegative"),
        sa.CheckConstraint(
            "comments IS NULL OR length(comments) <= 100",
            name="ck_payment_details_comments_length",
        ),
    )
    op.create_index("ix_payment_details_id", "payment_details", ["id"], unique=False)
    op.create_index("ix_payment_details_company_id", "payment_details", ["company_id"], unique=False)
    op.create_index("ix_payment_details_period_id", "payment_details", ["period_id"], unique=False)
    op.create_index("ix_payment_details_employee_id", "payment_details", ["employee_id"], unique=False)

    op.create_table(
        "balance_audit_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("information", sa.Text(), nullable=False),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_balance_audit_entries_id", "balance_audit_entries", ["id"], unique=False)
    op.create_index("ix_balance_audit_entries_company_id", "balance_audit_entries", ["company_id"], unique=False)
    op.create_index("ix_balance_audit_entries_employee_id", "balance_audit_entries", ["employee_id"], unique=False)

    op.execute(
        """
        CREATE OR REPLACE FUNCTION balance_audit_entries_block_mutation()
        RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'balance_audit_entries is append-only';
        END;
        $$ LANGUAGE plpgsql;

        DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_update ON balance_audit_entries;
        CREATE TRIGGER trg_balance_audit_entries_block_update
        BEFORE UPDATE ON balance_audit_entries
        FOR EACH ROW
        EXECUTE FUNCTION balance_audit_entries_block_mutation();

        DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_delete ON balance_audit_entries;
        CREATE TRIGGER trg_balance_audit_entries_block_delete
        BEFORE DELETE ON balance_audit_entries
        FOR EACH ROW
        EXECUTE FUNCTION balance_audit_entries_block_mutation();

        CREATE OR REPLACE FUNCTION payment_details_block_finalized_mutation()
        RETURNS trigger AS $$
        BEGIN
            IF OLD.is_finalize THEN
                RAISE EXCEPTION 'payment_details row % is finalized', OLD.id;
            END IF;
            IF TG_OP = 'DELETE' THEN
                RETURN OLD;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;

        DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_update ON payment_details;
        CREATE TRIGGER trg_payment_details_block_finalized_update
        BEFORE UPDATE ON payment_details
        FOR EACH ROW
        EXECUTE FUNCTION payment_details_block_finalized_mutation();

        DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_delete ON payment_details;
        CREATE TRIGGER trg_payment_details_block_finalized_delete
        BEFORE DELETE ON payment_details
        FOR EACH ROW
        EXECUTE FUNCTION payment_details_block_finalized_mutation();
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute(
        """
        DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_update ON payment_details;
        DROP TRIGGER IF EXISTS trg_payment_details_block_finalized_delete ON payment_details;
        DROP FUNCTION IF EXISTS payment_details_block_finalized_mutation();
        DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_update ON balance_audit_entries;
        DROP TRIGGER IF EXISTS trg_balance_audit_entries_block_delete ON balance_audit_entries;
        DROP FUNCTION IF EXISTS balance_audit_entries_block_mutation();
        """
    )

    op.drop_table("balance_audit_entries")
    op.drop_table("payment_details")
    op.drop_table("payroll_items")
    op.drop_table("pay_period")
    op.drop_table("employees")
    op.drop_table("payroll_cycle_settings")
