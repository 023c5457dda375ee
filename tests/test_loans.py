from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import FakeAsyncSession, LedgerStore, make_allocation, make_commitment, make_fund, make_lender, make_loan
from lending_os.api import deps
from lending_os.core.errors import InvalidInputError, InvalidStateError, NotFoundError
from lending_os.models.audit_log import AuditLog
from lending_os.models.loan import Loan
from lending_os.models.payment_schedule_entry import PaymentScheduleEntry
from lending_os.schemas.loan import LoanCreateRequest, LoanStatus
from lending_os.services import loans


CTX = deps.TenantContext(org_id="default")

FUNDING_PATH = [
    LoanStatus.SUBMITTED,
    LoanStatus.VERIFICATION,
    LoanStatus.UNDERWRITING,
    LoanStatus.APPROVED,
    LoanStatus.CLOSING,
]


@pytest.mark.asyncio
async def test_create_loan_starts_in_draft() -> None:
    db = FakeAsyncSession()
    LedgerStore(db)
    payload = LoanCreateRequest(principal=Decimal("12000.00"), annual_rate_percent=Decimal("12"), term_months=12)

    loan = await loans.create_loan(db, CTX, payload, actor_id="user_123")

    assert loan.status == "draft"
    assert loan.payment_type == "amortizing"
    assert loan.payment_frequency == "monthly"
    assert loan.created_by == "user_123"
    assert [row.action for row in db.added_of(AuditLog)] == ["loan.created"]
    assert db.commits == 1


@pytest.mark.asyncio
async def test_create_loan_rejects_invalid_terms() -> None:
    db = FakeAsyncSession()
    LedgerStore(db)
    payload = LoanCreateRequest(principal=Decimal("0"), annual_rate_percent=Decimal("5"), term_months=12)

    with pytest.raises(InvalidInputError):
        await loans.create_loan(db, CTX, payload, actor_id=None)
    assert db.added == []


@pytest.mark.asyncio
async def test_create_loan_unknown_lender() -> None:
    db = FakeAsyncSession()
    store = LedgerStore(db)
    foreign = make_lender(org_id="other-org")
    store.put(foreign)
    payload = LoanCreateRequest(
        principal=Decimal("5000.00"),
        annual_rate_percent=Decimal("7.5"),
        term_months=24,
        lender_id=foreign.id,
    )

    with pytest.raises(NotFoundError):
        await loans.create_loan(db, CTX, payload, actor_id=None)


@pytest.mark.asyncio
async def test_funding_generates_schedule() -> None:
    db = FakeAsyncSession()
    store = LedgerStore(db)
    loan = make_loan(start_date=None)
    store.put(loan)

    for target in FUNDING_PATH:
        await loans.transition_loan(db, CTX, loan.id, target, actor_id="user_123")
    assert store.rows[PaymentScheduleEntry] == []

    funded = await loans.transition_loan(
        db, CTX, loan.id, LoanStatus.FUNDED, actor_id="user_123", effective_date=date(2024, 3, 1)
    )

    assert funded.status == "funded"
    assert funded.start_date == date(2024, 3, 1)
    assert funded.maturity_date == date(2025, 3, 1)
    entries = store.rows[PaymentScheduleEntry]
    assert len(entries) == 12
    assert entries[0].due_date == date(2024, 4, 1)
    actions = [row.action for row in db.added_of(AuditLog)]
    assert actions[-2:] == ["loan.schedule.regenerated", "loan.status.funded"]
    assert db.commits == len(FUNDING_PATH) + 1


@pytest.mark.asyncio
async def test_illegal_transition_is_rejected() -> None:
    db = FakeAsyncSession()
    store = LedgerStore(db)
    loan = make_loan()
    store.put(loan)

    with pytest.raises(InvalidStateError) as exc_info:
        await loans.transition_loan(db, CTX, loan.id, LoanStatus.FUNDED, actor_id=None)

    assert exc_info.value.details["from"] == "draft"
    assert loan.status == "draft"
    assert db.commits == 0


@pytest.mark.asyncio
async def test_rejected_loan_is_terminal() -> None:
    db = FakeAsyncSession()
    store = LedgerStore(db)
    loan = make_loan(status="underwriting")
    store.put(loan)

    await loans.transition_loan(db, CTX, loan.id, LoanStatus.REJECTED, actor_id=None)
    with pytest.raises(InvalidStateError):
        await loans.transition_loan(db, CTX, loan.id, LoanStatus.APPROVED, actor_id=None)


def test_create_loan_route_wraps_response(client, store) -> None:
    response = client.post(
        "/api/v1/loans",
        json={"principal": "12000.00", "annual_rate_percent": "12", "term_months": 12},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "draft"
    assert len(store.rows[Loan]) == 1


def test_missing_loan_returns_error_envelope(client, store) -> None:
    response = client.get(f"/api/v1/loans/{uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "not_found"


def test_illegal_transition_route_returns_conflict(client, store) -> None:
    loan = make_loan()
    store.put(loan)

    response = client.post(f"/api/v1/loans/{loan.id}/status", json={"status": "funded"})

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


def test_invalid_terms_route_returns_bad_request(client, store) -> None:
    response = client.post(
        "/api/v1/loans",
        json={"principal": "1000.00", "annual_rate_percent": "5", "term_months": 0},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


def test_schedule_route_regenerates(client, store) -> None:
    loan = make_loan(status="funded")
    store.put(loan)

    response = client.post(f"/api/v1/loans/{loan.id}/payment-schedule")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["installment_count"] == 12
    assert data["entries"][0]["total_amount"] == "1066.19"


def test_over_allocation_route_returns_insufficient_capital(client, store) -> None:
    fund = make_fund()
    lender = make_lender()
    loan = make_loan(status="funded")
    store.put(
        fund,
        lender,
        loan,
        make_commitment(fund=fund, lender=lender, amount="100000.00"),
        make_allocation(fund=fund, loan=loan, amount="60000.00"),
    )

    response = client.post(
        f"/api/v1/funds/{fund.id}/allocations",
        json={"loan_id": str(loan.id), "amount": "50000.00"},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_capital"
    assert body["details"]["available"] == "40000.00"
