"""Create lending core tables: orgs, lenders, loans, schedules, fund ledger, audit logs"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_lending_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "orgs",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])
    op.create_index("ix_audit_logs_org_resource", "audit_logs", ["org_id", "resource_type", "resource_id"])

    op.create_table(
        "lenders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False, server_default="individual"),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("org_id", "id", name="uq_lenders_org_id_id"),
    )
    op.create_index("ix_lenders_org_id", "lenders", ["org_id"])
    op.create_index("ix_lenders_org_name", "lenders", ["org_id", "name"])

    op.create_table(
        "loans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("borrower_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "lender_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lenders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("principal", sa.Numeric(15, 2), nullable=False),
        sa.Column("annual_rate_percent", sa.Numeric(6, 3), nullable=False),
        sa.Column("term_months", sa.Integer(), nullable=False),
        sa.Column("payment_type", sa.String(length=20), nullable=False, server_default="amortizing"),
        sa.Column("payment_frequency", sa.String(length=20), nullable=False, server_default="monthly"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("status_changed_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("maturity_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "id", name="uq_loans_org_id_id"),
        sa.CheckConstraint("principal > 0", name="ck_loans_principal_positive"),
        sa.CheckConstraint("annual_rate_percent >= 0", name="ck_loans_rate_nonneg"),
        sa.CheckConstraint("term_months >= 1", name="ck_loans_term_positive"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'verification', 'underwriting', "
            "'approved', 'closing', 'funded', 'rejected')",
            name="ck_loans_status",
        ),
        sa.CheckConstraint("payment_type IN ('amortizing', 'interest_only')", name="ck_loans_payment_type"),
        sa.CheckConstraint(
            "payment_frequency IN ('monthly', 'quarterly', 'maturity')",
            name="ck_loans_payment_frequency",
        ),
    )
    op.create_index("ix_loans_org_id", "loans", ["org_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])

    op.create_table(
        "payment_schedule_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("loan_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("principal_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("interest_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("remaining_balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("generated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["org_id", "loan_id"],
            ["loans.org_id", "loans.id"],
            ondelete="CASCADE",
            name="fk_schedule_entries_org_loan",
        ),
        sa.UniqueConstraint("loan_id", "installment_number", name="uq_schedule_entries_loan_installment"),
        sa.CheckConstraint("installment_number >= 1", name="ck_schedule_entries_installment_positive"),
        sa.CheckConstraint("principal_amount >= 0", name="ck_schedule_entries_principal_nonneg"),
        sa.CheckConstraint("interest_amount >= 0", name="ck_schedule_entries_interest_nonneg"),
        sa.CheckConstraint("total_amount >= 0", name="ck_schedule_entries_total_nonneg"),
        sa.CheckConstraint("remaining_balance >= 0", name="ck_schedule_entries_balance_nonneg"),
    )
    op.create_index("ix_schedule_entries_org_loan", "payment_schedule_entries", ["org_id", "loan_id"])

    op.create_table(
        "funds",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("fund_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("total_capacity", sa.Numeric(15, 2), nullable=False),
        sa.Column("inception_date", sa.Date(), nullable=False),
        sa.Column("closing_date", sa.Date(), nullable=True),
        sa.Column("liquidation_date", sa.Date(), nullable=True),
        sa.Column("strategy", sa.Text(), nullable=True),
        sa.Column("target_return", sa.Numeric(5, 2), nullable=True),
        sa.Column("management_fee_bps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("performance_fee_bps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "id", name="uq_funds_org_id_id"),
        sa.CheckConstraint("total_capacity >= 0", name="ck_funds_capacity_nonneg"),
        sa.CheckConstraint("status IN ('active', 'closed', 'liquidated')", name="ck_funds_status"),
        sa.CheckConstraint(
            "fund_type IN ('private', 'syndicated', 'institutional')",
            name="ck_funds_fund_type",
        ),
    )
    op.create_index("ix_funds_org_id", "funds", ["org_id"])
    op.create_index("ix_funds_org_status", "funds", ["org_id", "status"])

    op.create_table(
        "fund_commitments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("fund_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lender_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("committed_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("commitment_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("cancelled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=255), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_commitments_org_fund",
        ),
        sa.ForeignKeyConstraint(
            ["org_id", "lender_id"],
            ["lenders.org_id", "lenders.id"],
            ondelete="RESTRICT",
            name="fk_fund_commitments_org_lender",
        ),
        sa.CheckConstraint("committed_amount > 0", name="ck_fund_commitments_amount_positive"),
        sa.CheckConstraint("status IN ('active', 'cancelled')", name="ck_fund_commitments_status"),
    )
    op.create_index("ix_fund_commitments_org_fund", "fund_commitments", ["org_id", "fund_id"])

    op.create_table(
        "fund_calls",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("fund_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("call_number", sa.Integer(), nullable=False),
        sa.Column("call_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_calls_org_fund",
        ),
        sa.UniqueConstraint("fund_id", "call_number", name="uq_fund_calls_fund_call_number"),
        sa.CheckConstraint("call_amount > 0", name="ck_fund_calls_amount_positive"),
        sa.CheckConstraint("call_number >= 1", name="ck_fund_calls_number_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'funded', 'overdue')",
            name="ck_fund_calls_status",
        ),
    )
    op.create_index("ix_fund_calls_org_id", "fund_calls", ["org_id"])
    op.create_index("ix_fund_calls_fund_id", "fund_calls", ["fund_id"])

    op.create_table(
        "fund_loan_allocations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("fund_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("loan_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("returned_amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("allocation_date", sa.Date(), nullable=False),
        sa.Column("full_return_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_allocations_org_fund",
        ),
        sa.ForeignKeyConstraint(
            ["org_id", "loan_id"],
            ["loans.org_id", "loans.id"],
            ondelete="RESTRICT",
            name="fk_fund_allocations_org_loan",
        ),
        sa.CheckConstraint("allocated_amount > 0", name="ck_fund_allocations_amount_positive"),
        sa.CheckConstraint(
            "returned_amount >= 0 AND returned_amount <= allocated_amount",
            name="ck_fund_allocations_returned_bounds",
        ),
        sa.CheckConstraint("status IN ('active', 'returned')", name="ck_fund_allocations_status"),
    )
    op.create_index("ix_fund_allocations_org_fund", "fund_loan_allocations", ["org_id", "fund_id"])
    op.create_index("ix_fund_allocations_org_loan", "fund_loan_allocations", ["org_id", "loan_id"])

    op.create_table(
        "fund_distributions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("fund_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("distribution_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("distribution_type", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_distributions_org_fund",
        ),
        sa.CheckConstraint("total_amount > 0", name="ck_fund_distributions_amount_positive"),
        sa.CheckConstraint(
            "distribution_type IN ('return_of_capital', 'profit', 'interest')",
            name="ck_fund_distributions_type",
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'processed', 'cancelled')",
            name="ck_fund_distributions_status",
        ),
    )
    op.create_index("ix_fund_distributions_org_id", "fund_distributions", ["org_id"])
    op.create_index("ix_fund_distributions_fund_id", "fund_distributions", ["fund_id"])


def downgrade() -> None:
    op.drop_table("fund_distributions")
    op.drop_table("fund_loan_allocations")
    op.drop_table("fund_calls")
    op.drop_table("fund_commitments")
    op.drop_table("funds")
    op.drop_table("payment_schedule_entries")
    op.drop_table("loans")
    op.drop_table("lenders")
    op.drop_index("ix_audit_logs_org_resource", table_name="audit_logs")
    op.drop_index("ix_audit_logs_org_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("orgs")
