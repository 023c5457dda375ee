import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from lending_os.db.base import Base


class FundCommitment(Base):
    __tablename__ = "fund_commitments"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_commitments_org_fund",
        ),
        ForeignKeyConstraint(
            ["org_id", "lender_id"],
            ["lenders.org_id", "lenders.id"],
            ondelete="RESTRICT",
            name="fk_fund_commitments_org_lender",
        ),
        CheckConstraint("committed_amount > 0", name="ck_fund_commitments_amount_positive"),
        CheckConstraint("status IN ('active', 'cancelled')", name="ck_fund_commitments_status"),
        Index("ix_fund_commitments_org_fund", "org_id", "fund_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), nullable=False)
    fund_id = Column(UUID(as_uuid=True), nullable=False)
    lender_id = Column(UUID(as_uuid=True), nullable=False)
    committed_amount = Column(Numeric(15, 2), nullable=False)
    commitment_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(255), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
