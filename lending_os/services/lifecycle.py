from __future__ import annotations

from enum import Enum
from typing import Mapping

from lending_os.core.errors import InvalidStateError
from lending_os.schemas.fund import AllocationStatus, CommitmentStatus, FundStatus
from lending_os.schemas.loan import LoanStatus


LOAN_TRANSITIONS: dict[LoanStatus, set[LoanStatus]] = {
    LoanStatus.DRAFT: {LoanStatus.SUBMITTED, LoanStatus.REJECTED},
    LoanStatus.SUBMITTED: {LoanStatus.VERIFICATION, LoanStatus.REJECTED},
    LoanStatus.VERIFICATION: {LoanStatus.UNDERWRITING, LoanStatus.REJECTED},
    LoanStatus.UNDERWRITING: {LoanStatus.APPROVED, LoanStatus.REJECTED},
    LoanStatus.APPROVED: {LoanStatus.CLOSING, LoanStatus.REJECTED},
    LoanStatus.CLOSING: {LoanStatus.FUNDED, LoanStatus.REJECTED},
    LoanStatus.FUNDED: set(),
    LoanStatus.REJECTED: set(),
}

FUND_TRANSITIONS: dict[FundStatus, set[FundStatus]] = {
    FundStatus.ACTIVE: {FundStatus.CLOSED},
    FundStatus.CLOSED: {FundStatus.LIQUIDATED},
    FundStatus.LIQUIDATED: set(),
}

COMMITMENT_TRANSITIONS: dict[CommitmentStatus, set[CommitmentStatus]] = {
    CommitmentStatus.ACTIVE: {CommitmentStatus.CANCELLED},
    CommitmentStatus.CANCELLED: set(),
}

ALLOCATION_TRANSITIONS: dict[AllocationStatus, set[AllocationStatus]] = {
    AllocationStatus.ACTIVE: {AllocationStatus.RETURNED},
    AllocationStatus.RETURNED: set(),
}


def can_transition(table: Mapping[Enum, set], current, target) -> bool:
    current_status = _coerce(table, current)
    target_status = _coerce(table, target)
    if current_status is None or target_status is None:
        return False
    return target_status in table.get(current_status, set())


def require_transition(table: Mapping[Enum, set], current, target, *, resource: str, resource_id=None) -> None:
    if can_transition(table, current, target):
        return
    raise InvalidStateError(
        f"Cannot move {resource} from {_label(current)} to {_label(target)}",
        details={
            "resource": resource,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "from": _label(current),
            "to": _label(target),
        },
    )


def _coerce(table: Mapping[Enum, set], value):
    if value is None:
        return None
    enum_cls = type(next(iter(table)))
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _label(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)
