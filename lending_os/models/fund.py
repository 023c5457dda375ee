import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from lending_os.db.base import Base


class Fund(Base):
    """Investment vehicle; capital balances are derived from its ledger rows."""

    __tablename__ = "funds"
    __table_args__ = (
        UniqueConstraint("org_id", "id", name="uq_funds_org_id_id"),
        CheckConstraint("total_capacity >= 0", name="ck_funds_capacity_nonneg"),
        CheckConstraint("status IN ('active', 'closed', 'liquidated')", name="ck_funds_status"),
        CheckConstraint(
            "fund_type IN ('private', 'syndicated', 'institutional')",
            name="ck_funds_fund_type",
        ),
        Index("ix_funds_org_status", "org_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String(64), ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    fund_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    total_capacity = Column(Numeric(15, 2), nullable=False)
    inception_date = Column(Date, nullable=False)
    closing_date = Column(Date, nullable=True)
    liquidation_date = Column(Date, nullable=True)
    strategy = Column(Text, nullable=True)
    target_return = Column(Numeric(5, 2), nullable=True)
    management_fee_bps = Column(Integer, nullable=False, default=0)
    performance_fee_bps = Column(Integer, nullable=False, default=0)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
