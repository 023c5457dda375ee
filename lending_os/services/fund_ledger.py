from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from lending_os.core.errors import (
    InsufficientCapitalError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from lending_os.models.fund import Fund
from lending_os.models.fund_call import FundCall
from lending_os.models.fund_commitment import FundCommitment
from lending_os.models.fund_loan_allocation import FundLoanAllocation
from lending_os.schemas.fund import AllocationStatus, CapitalCallStatus, CommitmentStatus, FundStatus


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class FundBalances:
    total_committed: Decimal
    total_called: Decimal
    total_allocated: Decimal
    total_returned: Decimal

    @property
    def outstanding_allocated(self) -> Decimal:
        return _money(self.total_allocated - self.total_returned)

    @property
    def uncalled_commitment(self) -> Decimal:
        return _money(self.total_committed - self.total_called)

    @property
    def available_capital(self) -> Decimal:
        return _money(self.total_committed - self.outstanding_allocated)

    def as_dict(self) -> dict[str, Decimal]:
        data = asdict(self)
        data["outstanding_allocated"] = self.outstanding_allocated
        data["uncalled_commitment"] = self.uncalled_commitment
        data["available_capital"] = self.available_capital
        return data


def is_active_commitment(commitment: FundCommitment) -> bool:
    return commitment.status == CommitmentStatus.ACTIVE.value


def compute_balances(
    commitments: Iterable[FundCommitment],
    calls: Iterable[FundCall],
    allocations: Iterable[FundLoanAllocation],
) -> FundBalances:
    """Derive fund balances from ledger rows. Cancelled commitments carry no capital."""
    committed = sum((_money(c.committed_amount) for c in commitments if is_active_commitment(c)), ZERO)
    called = sum((_money(call.call_amount) for call in calls), ZERO)
    allocation_rows = list(allocations)
    allocated = sum((_money(a.allocated_amount) for a in allocation_rows), ZERO)
    returned = sum((_money(a.returned_amount) for a in allocation_rows), ZERO)
    return FundBalances(
        total_committed=_money(committed),
        total_called=_money(called),
        total_allocated=_money(allocated),
        total_returned=_money(returned),
    )


def require_positive_amount(amount, *, field: str = "amount") -> Decimal:
    try:
        value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    except ArithmeticError as exc:
        raise InvalidInputError(f"{field} must be a number", details={field: str(amount)}) from exc
    if not value.is_finite() or value <= 0:
        raise InvalidInputError(f"{field} must be greater than zero", details={field: str(amount)})
    if value != value.quantize(TWOPLACES):
        raise InvalidInputError(f"{field} supports at most two decimal places", details={field: str(amount)})
    return value


def require_fund_open(fund: Fund, *, operation: str) -> None:
    if fund.status != FundStatus.ACTIVE.value:
        logger.warning(
            "Fund not open for %s",
            operation,
            extra={"fund_id": str(fund.id), "org_id": fund.org_id, "fund_status": fund.status},
        )
        raise InvalidStateError(
            f"Fund is {fund.status}; {operation} is not allowed",
            details={"fund_id": str(fund.id), "status": fund.status, "operation": operation},
        )


def ensure_can_allocate(fund: Fund, balances: FundBalances, amount: Decimal) -> None:
    available = balances.available_capital
    if amount > available:
        logger.warning(
            "Allocation rejected: insufficient capital",
            extra={
                "fund_id": str(fund.id),
                "org_id": fund.org_id,
                "attempted_amount": str(amount),
                "available_capital": str(available),
            },
        )
        raise InsufficientCapitalError(
            "Allocation exceeds available capital",
            details={
                "fund_id": str(fund.id),
                "requested": str(amount),
                "available": str(available),
            },
        )


def ensure_can_call(fund: Fund, balances: FundBalances, amount: Decimal) -> None:
    uncalled = balances.uncalled_commitment
    if amount > uncalled:
        logger.warning(
            "Capital call rejected: exceeds uncalled commitments",
            extra={
                "fund_id": str(fund.id),
                "org_id": fund.org_id,
                "attempted_amount": str(amount),
                "uncalled_commitment": str(uncalled),
            },
        )
        raise InsufficientCapitalError(
            "Capital call exceeds uncalled commitments",
            details={
                "fund_id": str(fund.id),
                "requested": str(amount),
                "uncalled_commitment": str(uncalled),
            },
        )


def ensure_can_cancel(fund: Fund, balances: FundBalances, commitment: FundCommitment) -> None:
    """Cancelling must leave enough commitment to cover called and deployed capital."""
    remaining = _money(balances.total_committed - _money(commitment.committed_amount))
    required = max(balances.total_called, balances.outstanding_allocated)
    if remaining < required:
        logger.warning(
            "Commitment cancellation rejected: capital still in use",
            extra={
                "fund_id": str(fund.id),
                "org_id": fund.org_id,
                "commitment_id": str(commitment.id),
                "attempted_amount": str(commitment.committed_amount),
                "remaining_committed": str(remaining),
                "required_committed": str(required),
            },
        )
        raise InsufficientCapitalError(
            "Cancelling this commitment would leave called or allocated capital uncovered",
            details={
                "fund_id": str(fund.id),
                "commitment_id": str(commitment.id),
                "remaining_committed": str(remaining),
                "total_called": str(balances.total_called),
                "outstanding_allocated": str(balances.outstanding_allocated),
            },
        )


def ensure_can_return(allocation: FundLoanAllocation, amount: Decimal) -> None:
    if allocation.status != AllocationStatus.ACTIVE.value:
        raise NotFoundError(
            "No active allocation to return capital from",
            details={"allocation_id": str(allocation.id), "status": allocation.status},
        )
    outstanding = _money(allocation.outstanding_amount)
    if amount > outstanding:
        logger.warning(
            "Capital return rejected: exceeds outstanding allocation",
            extra={
                "allocation_id": str(allocation.id),
                "fund_id": str(allocation.fund_id),
                "org_id": allocation.org_id,
                "attempted_amount": str(amount),
                "outstanding_amount": str(outstanding),
            },
        )
        raise InvalidInputError(
            "Return amount exceeds outstanding allocation",
            details={
                "allocation_id": str(allocation.id),
                "requested": str(amount),
                "outstanding": str(outstanding),
            },
        )


def ensure_can_liquidate(fund: Fund, balances: FundBalances) -> None:
    if balances.outstanding_allocated > 0:
        logger.warning(
            "Liquidation rejected: allocations outstanding",
            extra={
                "fund_id": str(fund.id),
                "org_id": fund.org_id,
                "outstanding_allocated": str(balances.outstanding_allocated),
            },
        )
        raise InvalidStateError(
            "Fund still has capital allocated to loans",
            details={"fund_id": str(fund.id), "outstanding_allocated": str(balances.outstanding_allocated)},
        )


def next_call_number(calls: Iterable[FundCall]) -> int:
    return max((int(call.call_number) for call in calls), default=0) + 1


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return Decimal("0.00")
    return (numerator * Decimal("100") / denominator).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def compute_metrics(
    fund: Fund,
    commitments: Iterable[FundCommitment],
    calls: Iterable[FundCall],
    allocations: Iterable[FundLoanAllocation],
) -> dict:
    """Balances plus the portfolio ratios shown on a fund's detail view."""
    commitment_rows = list(commitments)
    call_rows = list(calls)
    allocation_rows = list(allocations)
    balances = compute_balances(commitment_rows, call_rows, allocation_rows)
    capacity = _money(fund.total_capacity)
    active_commitments = [c for c in commitment_rows if is_active_commitment(c)]
    open_call_statuses = {
        CapitalCallStatus.PENDING.value,
        CapitalCallStatus.SENT.value,
        CapitalCallStatus.OVERDUE.value,
    }
    metrics = balances.as_dict()
    metrics.update(
        {
            "uncommitted_capacity": _money(capacity - balances.total_committed),
            "deployment_rate": _percent(balances.outstanding_allocated, balances.total_committed),
            "return_rate": _percent(balances.total_returned, balances.total_allocated),
            "investor_count": len({c.lender_id for c in active_commitments}),
            "allocation_count": sum(1 for a in allocation_rows if a.status == AllocationStatus.ACTIVE.value),
            "active_call_count": sum(1 for call in call_rows if call.status in open_call_statuses),
        }
    )
    return metrics
