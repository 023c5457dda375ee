import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from lending_os.db.base import Base


class PaymentScheduleEntry(Base):
    __tablename__ = "payment_schedule_entries"
    __allow_unmapped__ = True
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "loan_id"],
            ["loans.org_id", "loans.id"],
            ondelete="CASCADE",
            name="fk_schedule_entries_org_loan",
        ),
        UniqueConstraint("loan_id", "installment_number", name="uq_schedule_entries_loan_installment"),
        CheckConstraint("installment_number >= 1", name="ck_schedule_entries_installment_positive"),
        CheckConstraint("principal_amount >= 0", name="ck_schedule_entries_principal_nonneg"),
        CheckConstraint("interest_amount >= 0", name="ck_schedule_entries_interest_nonneg"),
        CheckConstraint("total_amount >= 0", name="ck_schedule_entries_total_nonneg"),
        CheckConstraint("remaining_balance >= 0", name="ck_schedule_entries_balance_nonneg"),
        Index("ix_schedule_entries_org_loan", "org_id", "loan_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), nullable=False)
    loan_id = Column(UUID(as_uuid=True), nullable=False)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    principal_amount = Column(Numeric(15, 2), nullable=False)
    interest_amount = Column(Numeric(15, 2), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    remaining_balance = Column(Numeric(15, 2), nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("Loan", back_populates="schedule_entries")
