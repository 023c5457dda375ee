from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FundType(str, Enum):
    PRIVATE = "private"
    SYNDICATED = "syndicated"
    INSTITUTIONAL = "institutional"


class FundStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    LIQUIDATED = "liquidated"


class CommitmentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class CapitalCallStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FUNDED = "funded"
    OVERDUE = "overdue"


class AllocationStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"


class DistributionType(str, Enum):
    RETURN_OF_CAPITAL = "return_of_capital"
    PROFIT = "profit"
    INTEREST = "interest"


class DistributionStatus(str, Enum):
    SCHEDULED = "scheduled"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


Money = Annotated[Decimal, Field(max_digits=15, decimal_places=2)]


class FundCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    fund_type: FundType
    total_capacity: Money
    inception_date: date
    strategy: str | None = None
    target_return: Decimal | None = Field(default=None, max_digits=5, decimal_places=2)
    management_fee_bps: int = Field(default=0, ge=0, le=10000)
    performance_fee_bps: int = Field(default=0, ge=0, le=10000)


class FundUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    strategy: str | None = None
    total_capacity: Money | None = None
    target_return: Decimal | None = Field(default=None, max_digits=5, decimal_places=2)
    management_fee_bps: int | None = Field(default=None, ge=0, le=10000)
    performance_fee_bps: int | None = Field(default=None, ge=0, le=10000)


class FundDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    name: str
    fund_type: FundType
    status: FundStatus
    total_capacity: Decimal
    inception_date: date
    closing_date: date | None = None
    liquidation_date: date | None = None
    strategy: str | None = None
    target_return: Decimal | None = None
    management_fee_bps: int = 0
    performance_fee_bps: int = 0
    created_at: datetime | None = None


class FundBalancesDTO(BaseModel):
    total_committed: Decimal
    total_called: Decimal
    total_allocated: Decimal
    total_returned: Decimal
    outstanding_allocated: Decimal
    uncalled_commitment: Decimal
    available_capital: Decimal


class FundMetricsDTO(FundBalancesDTO):
    uncommitted_capacity: Decimal
    deployment_rate: Decimal
    return_rate: Decimal
    investor_count: int
    allocation_count: int
    active_call_count: int


class FundDetailResponse(BaseModel):
    fund: FundDTO
    metrics: FundMetricsDTO


class FundListResponse(BaseModel):
    items: list[FundDTO]
    total: int


class CommitmentCreateRequest(BaseModel):
    lender_id: UUID
    amount: Money
    commitment_date: date | None = None


class CommitmentCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class CommitmentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fund_id: UUID
    lender_id: UUID
    committed_amount: Decimal
    commitment_date: date
    status: CommitmentStatus
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None


class CommitmentListResponse(BaseModel):
    items: list[CommitmentDTO]
    total: int
    total_active_committed: Decimal


class CapitalCallCreateRequest(BaseModel):
    amount: Money
    due_date: date
    call_number: int | None = Field(default=None, ge=1)
    purpose: str | None = None
    notes: str | None = None


class CapitalCallDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fund_id: UUID
    call_number: int
    call_amount: Decimal
    due_date: date
    status: CapitalCallStatus
    purpose: str | None = None
    notes: str | None = None


class CapitalCallListResponse(BaseModel):
    items: list[CapitalCallDTO]
    total: int


class AllocationCreateRequest(BaseModel):
    loan_id: UUID
    amount: Money
    allocation_date: date | None = None


class AllocationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fund_id: UUID
    loan_id: UUID
    allocated_amount: Decimal
    returned_amount: Decimal
    outstanding_amount: Decimal
    status: AllocationStatus
    allocation_date: date
    full_return_date: date | None = None


class AllocationListResponse(BaseModel):
    items: list[AllocationDTO]
    total: int


class AllocationReturnRequest(BaseModel):
    amount: Money
    returned_on: date | None = None


class DistributionCreateRequest(BaseModel):
    total_amount: Money
    distribution_type: DistributionType
    distribution_date: date
    notes: str | None = None


class DistributionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fund_id: UUID
    distribution_date: date
    total_amount: Decimal
    distribution_type: DistributionType
    status: DistributionStatus
    notes: str | None = None


class DistributionListResponse(BaseModel):
    items: list[DistributionDTO]
    total: int
