import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from lending_os.db.base import Base


class Loan(Base):
    __tablename__ = "loans"
    __allow_unmapped__ = True
    __table_args__ = (
        UniqueConstraint("org_id", "id", name="uq_loans_org_id_id"),
        CheckConstraint("principal > 0", name="ck_loans_principal_positive"),
        CheckConstraint("annual_rate_percent >= 0", name="ck_loans_rate_nonneg"),
        CheckConstraint("term_months >= 1", name="ck_loans_term_positive"),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'verification', 'underwriting', "
            "'approved', 'closing', 'funded', 'rejected')",
            name="ck_loans_status",
        ),
        CheckConstraint("payment_type IN ('amortizing', 'interest_only')", name="ck_loans_payment_type"),
        CheckConstraint(
            "payment_frequency IN ('monthly', 'quarterly', 'maturity')",
            name="ck_loans_payment_frequency",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    borrower_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    lender_id = Column(UUID(as_uuid=True), ForeignKey("lenders.id", ondelete="SET NULL"), nullable=True)
    principal = Column(Numeric(15, 2), nullable=False)
    annual_rate_percent = Column(Numeric(6, 3), nullable=False)
    term_months = Column(Integer, nullable=False)
    payment_type = Column(String(20), nullable=False, default="amortizing")
    payment_frequency = Column(String(20), nullable=False, default="monthly")
    status = Column(String(20), nullable=False, default="draft", index=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    start_date = Column(Date, nullable=True)
    maturity_date = Column(Date, nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    schedule_entries = relationship(
        "PaymentScheduleEntry",
        back_populates="loan",
        order_by="PaymentScheduleEntry.installment_number",
        passive_deletes=True,
    )
