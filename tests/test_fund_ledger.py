from decimal import Decimal

import pytest

from conftest import make_allocation, make_call, make_commitment, make_fund, make_lender, make_loan
from lending_os.core.errors import (
    InsufficientCapitalError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from lending_os.services import fund_ledger


def test_balances_ignore_cancelled_commitments() -> None:
    fund = make_fund()
    lender = make_lender()
    commitments = [
        make_commitment(fund=fund, lender=lender, amount="100000.00"),
        make_commitment(fund=fund, lender=lender, amount="25000.00", status="cancelled"),
    ]

    balances = fund_ledger.compute_balances(commitments, [], [])

    assert balances.total_committed == Decimal("100000.00")
    assert balances.available_capital == Decimal("100000.00")


def test_available_capital_nets_outstanding_allocations() -> None:
    fund = make_fund()
    lender = make_lender()
    loan = make_loan()
    commitments = [make_commitment(fund=fund, lender=lender, amount="100000.00")]
    allocations = [
        make_allocation(fund=fund, loan=loan, amount="60000.00", returned="20000.00"),
        make_allocation(fund=fund, loan=loan, amount="10000.00"),
    ]
    calls = [make_call(fund=fund, amount="30000.00")]

    balances = fund_ledger.compute_balances(commitments, calls, allocations)

    assert balances.total_allocated == Decimal("70000.00")
    assert balances.total_returned == Decimal("20000.00")
    assert balances.outstanding_allocated == Decimal("50000.00")
    assert balances.available_capital == Decimal("50000.00")
    assert balances.uncalled_commitment == Decimal("70000.00")


def test_allocation_over_available_is_rejected() -> None:
    fund = make_fund()
    balances = fund_ledger.FundBalances(
        total_committed=Decimal("100000.00"),
        total_called=Decimal("0.00"),
        total_allocated=Decimal("60000.00"),
        total_returned=Decimal("0.00"),
    )

    fund_ledger.ensure_can_allocate(fund, balances, Decimal("40000.00"))
    with pytest.raises(InsufficientCapitalError) as exc_info:
        fund_ledger.ensure_can_allocate(fund, balances, Decimal("40000.01"))
    assert exc_info.value.details["available"] == "40000.00"


def test_call_cannot_exceed_commitments() -> None:
    fund = make_fund()
    balances = fund_ledger.FundBalances(
        total_committed=Decimal("50000.00"),
        total_called=Decimal("45000.00"),
        total_allocated=Decimal("0.00"),
        total_returned=Decimal("0.00"),
    )

    fund_ledger.ensure_can_call(fund, balances, Decimal("5000.00"))
    with pytest.raises(InsufficientCapitalError):
        fund_ledger.ensure_can_call(fund, balances, Decimal("5000.01"))


def test_cancel_blocked_while_capital_in_use() -> None:
    fund = make_fund()
    lender = make_lender()
    keep = make_commitment(fund=fund, lender=lender, amount="40000.00")
    drop = make_commitment(fund=fund, lender=lender, amount="60000.00")
    loan = make_loan()
    allocations = [make_allocation(fund=fund, loan=loan, amount="50000.00")]
    balances = fund_ledger.compute_balances([keep, drop], [], allocations)

    with pytest.raises(InsufficientCapitalError):
        fund_ledger.ensure_can_cancel(fund, balances, drop)
    fund_ledger.ensure_can_cancel(fund, balances, keep)


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc", Decimal("1.001"), Decimal("NaN")])
def test_require_positive_amount_rejects(amount) -> None:
    with pytest.raises(InvalidInputError):
        fund_ledger.require_positive_amount(amount)


def test_return_bounds() -> None:
    fund = make_fund()
    loan = make_loan()
    allocation = make_allocation(fund=fund, loan=loan, amount="1000.00", returned="400.00")

    fund_ledger.ensure_can_return(allocation, Decimal("600.00"))
    with pytest.raises(InvalidInputError):
        fund_ledger.ensure_can_return(allocation, Decimal("600.01"))

    allocation.status = "returned"
    with pytest.raises(NotFoundError):
        fund_ledger.ensure_can_return(allocation, Decimal("1.00"))


def test_closed_fund_is_not_open() -> None:
    with pytest.raises(InvalidStateError):
        fund_ledger.require_fund_open(make_fund(status="closed"), operation="allocation")


def test_next_call_number() -> None:
    fund = make_fund()
    assert fund_ledger.next_call_number([]) == 1
    calls = [make_call(fund=fund, amount="10.00", call_number=1), make_call(fund=fund, amount="10.00", call_number=3)]
    assert fund_ledger.next_call_number(calls) == 4


def test_metrics() -> None:
    fund = make_fund(total_capacity=Decimal("500000.00"))
    lender_a = make_lender()
    lender_b = make_lender(name="North Bank")
    loan = make_loan()
    commitments = [
        make_commitment(fund=fund, lender=lender_a, amount="150000.00"),
        make_commitment(fund=fund, lender=lender_b, amount="50000.00"),
    ]
    calls = [
        make_call(fund=fund, amount="20000.00", call_number=1, status="funded"),
        make_call(fund=fund, amount="30000.00", call_number=2, status="pending"),
        make_call(fund=fund, amount="5000.00", call_number=3, status="overdue"),
    ]
    allocations = [
        make_allocation(fund=fund, loan=loan, amount="100000.00", returned="25000.00"),
        make_allocation(fund=fund, loan=loan, amount="10000.00", returned="10000.00", status="returned"),
    ]

    metrics = fund_ledger.compute_metrics(fund, commitments, calls, allocations)

    assert metrics["total_committed"] == Decimal("200000.00")
    assert metrics["uncommitted_capacity"] == Decimal("300000.00")
    assert metrics["outstanding_allocated"] == Decimal("75000.00")
    assert metrics["available_capital"] == Decimal("125000.00")
    assert metrics["deployment_rate"] == Decimal("37.50")
    assert metrics["return_rate"] == Decimal("31.82")
    assert metrics["investor_count"] == 2
    assert metrics["allocation_count"] == 1
    assert metrics["active_call_count"] == 2


def test_overdue_call_counts_as_active() -> None:
    fund = make_fund()
    lender = make_lender()
    commitments = [make_commitment(fund=fund, lender=lender, amount="1000.00")]
    calls = [make_call(fund=fund, amount="100.00", status="overdue")]

    metrics = fund_ledger.compute_metrics(fund, commitments, calls, [])

    assert metrics["active_call_count"] == 1
    assert metrics["deployment_rate"] == Decimal("0.00")
    assert metrics["return_rate"] == Decimal("0.00")
