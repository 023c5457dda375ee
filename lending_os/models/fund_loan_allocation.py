import uuid
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from lending_os.db.base import Base


class FundLoanAllocation(Base):
    __tablename__ = "fund_loan_allocations"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_allocations_org_fund",
        ),
        ForeignKeyConstraint(
            ["org_id", "loan_id"],
            ["loans.org_id", "loans.id"],
            ondelete="RESTRICT",
            name="fk_fund_allocations_org_loan",
        ),
        CheckConstraint("allocated_amount > 0", name="ck_fund_allocations_amount_positive"),
        CheckConstraint(
            "returned_amount >= 0 AND returned_amount <= allocated_amount",
            name="ck_fund_allocations_returned_bounds",
        ),
        CheckConstraint("status IN ('active', 'returned')", name="ck_fund_allocations_status"),
        Index("ix_fund_allocations_org_fund", "org_id", "fund_id"),
        Index("ix_fund_allocations_org_loan", "org_id", "loan_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), nullable=False)
    fund_id = Column(UUID(as_uuid=True), nullable=False)
    loan_id = Column(UUID(as_uuid=True), nullable=False)
    allocated_amount = Column(Numeric(15, 2), nullable=False)
    returned_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    status = Column(String(20), nullable=False, default="active")
    allocation_date = Column(Date, nullable=False)
    full_return_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def outstanding_amount(self) -> Decimal:
        return Decimal(self.allocated_amount or 0) - Decimal(self.returned_amount or 0)
