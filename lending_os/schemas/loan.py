from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoanStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFICATION = "verification"
    UNDERWRITING = "underwriting"
    APPROVED = "approved"
    CLOSING = "closing"
    FUNDED = "funded"
    REJECTED = "rejected"


class PaymentType(str, Enum):
    AMORTIZING = "amortizing"
    INTEREST_ONLY = "interest_only"


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    MATURITY = "maturity"


class LoanCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    borrower_id: UUID | None = None
    lender_id: UUID | None = None
    principal: Decimal = Field(max_digits=15, decimal_places=2)
    annual_rate_percent: Decimal = Field(ge=0, le=100, max_digits=6, decimal_places=3)
    term_months: int
    payment_type: PaymentType = PaymentType.AMORTIZING
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    start_date: date | None = None


class LoanStatusTransitionRequest(BaseModel):
    status: LoanStatus
    effective_date: date | None = None


class LoanDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    borrower_id: UUID | None = None
    lender_id: UUID | None = None
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    payment_type: PaymentType
    payment_frequency: PaymentFrequency
    status: LoanStatus
    status_changed_at: datetime | None = None
    start_date: date | None = None
    maturity_date: date | None = None
    created_at: datetime | None = None


class LoanListResponse(BaseModel):
    items: list[LoanDTO]
    total: int


class PaymentScheduleEntryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    remaining_balance: Decimal


class PaymentScheduleResponse(BaseModel):
    loan_id: UUID
    payment_type: PaymentType
    payment_frequency: PaymentFrequency
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    start_date: date | None = None
    installment_count: int
    periodic_payment: Decimal
    total_principal: Decimal
    total_interest: Decimal
    total_payable: Decimal
    generated_at: datetime | None = None
    entries: list[PaymentScheduleEntryDTO]


class CapitalReturnRequest(BaseModel):
    amount: Decimal = Field(max_digits=15, decimal_places=2)
    returned_on: date | None = None
    fund_id: UUID | None = None
