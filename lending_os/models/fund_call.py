import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from lending_os.db.base import Base


class FundCall(Base):
    __tablename__ = "fund_calls"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "fund_id"],
            ["funds.org_id", "funds.id"],
            ondelete="CASCADE",
            name="fk_fund_calls_org_fund",
        ),
        UniqueConstraint("fund_id", "call_number", name="uq_fund_calls_fund_call_number"),
        CheckConstraint("call_amount > 0", name="ck_fund_calls_amount_positive"),
        CheckConstraint("call_number >= 1", name="ck_fund_calls_number_positive"),
        CheckConstraint(
            "status IN ('pending', 'sent', 'funded', 'overdue')",
            name="ck_fund_calls_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), nullable=False, index=True)
    fund_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    call_number = Column(Integer, nullable=False)
    call_amount = Column(Numeric(15, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    purpose = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
