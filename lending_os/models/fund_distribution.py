import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from lending_os.db.base import Base


class FundDistribution(Base):
    __tablename__ = "fund_distributions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_distributions_org_fund",
        ),
        CheckConstraint("total_amount > 0", name="ck_fund_distributions_amount_positive"),
        CheckConstraint(
            "distribution_type IN ('return_of_capital', 'profit', 'interest')",
            name="ck_fund_distributions_type",
        ),
        CheckConstraint(
            "status IN ('scheduled', 'processed', 'cancelled')",
            name="ck_fund_distributions_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), nullable=False, index=True)
    fund_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    distribution_date = Column(Date, nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    distribution_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="scheduled")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
