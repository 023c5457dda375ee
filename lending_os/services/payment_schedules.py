from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.errors import InvalidInputError, NotFoundError
from lending_os.core.settings import settings
from lending_os.models.loan import Loan
from lending_os.models.payment_schedule_entry import PaymentScheduleEntry
from lending_os.schemas.loan import (
    PaymentFrequency,
    PaymentScheduleEntryDTO,
    PaymentScheduleResponse,
    PaymentType,
)
from lending_os.services.audit import record_audit_log
from lending_os.utils.dates import add_months


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _q(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def months_per_period(payment_frequency: PaymentFrequency | str, term_months: int) -> int:
    frequency = PaymentFrequency(payment_frequency)
    if frequency == PaymentFrequency.QUARTERLY:
        return 3
    if frequency == PaymentFrequency.MATURITY:
        return term_months
    return 1


def installment_count(payment_frequency: PaymentFrequency | str, term_months: int) -> int:
    return math.ceil(term_months / months_per_period(payment_frequency, term_months))


def periodic_rate(annual_rate_percent: Decimal, period_months: int) -> Decimal:
    return _as_decimal(annual_rate_percent) * Decimal(period_months) / Decimal("1200")


def level_payment(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    """Level installment that retires ``principal`` over ``periods`` at ``rate``."""
    if periods <= 0:
        return ZERO
    if rate == 0:
        return _q(principal / Decimal(periods))
    factor = (Decimal("1") + rate) ** periods
    payment = principal * rate * factor / (factor - Decimal("1"))
    return _q(payment)


def validate_terms(principal, annual_rate_percent, term_months) -> tuple[Decimal, Decimal, int]:
    try:
        principal_value = _as_decimal(principal)
        rate_value = _as_decimal(annual_rate_percent)
    except (ArithmeticError, ValueError) as exc:
        raise InvalidInputError("Principal and rate must be numeric") from exc
    if not principal_value.is_finite() or principal_value <= 0:
        raise InvalidInputError("Principal must be greater than zero", details={"principal": str(principal)})
    if not rate_value.is_finite() or rate_value < 0:
        raise InvalidInputError(
            "Annual rate must be zero or positive",
            details={"annual_rate_percent": str(annual_rate_percent)},
        )
    if term_months is None or isinstance(term_months, bool) or int(term_months) != term_months:
        raise InvalidInputError("Term must be a whole number of months", details={"term_months": term_months})
    term = int(term_months)
    if term <= 0:
        raise InvalidInputError("Term must be at least one month", details={"term_months": term})
    if term > settings.max_schedule_term_months:
        raise InvalidInputError(
            "Term exceeds the maximum supported length",
            details={"term_months": term, "max_term_months": settings.max_schedule_term_months},
        )
    return principal_value, rate_value, term


def generate_schedule(
    principal,
    annual_rate_percent,
    term_months: int,
    start_date: date,
    payment_type: PaymentType | str = PaymentType.AMORTIZING,
    payment_frequency: PaymentFrequency | str = PaymentFrequency.MONTHLY,
) -> list[PaymentScheduleEntryDTO]:
    """Build the installment list for a loan.

    Amortizing loans pay a level installment with interest on the declining
    balance; the last installment absorbs rounding so the balance closes at
    zero. Interest-only loans pay flat interest and the whole principal with
    the final installment. Due dates fall whole periods after ``start_date``
    except the last, which lands on the term end; when the term is not a
    multiple of the period the last period is short and accrues interest for
    its own months only.
    """
    principal_value, rate_value, term = validate_terms(principal, annual_rate_percent, term_months)
    if start_date is None:
        raise InvalidInputError("A start date is required to build a schedule")
    kind = PaymentType(payment_type)
    period_months = months_per_period(payment_frequency, term)
    periods = installment_count(payment_frequency, term)
    rate = periodic_rate(rate_value, period_months)

    def months_in(period: int) -> int:
        return min(period_months, term - (period - 1) * period_months)

    def due_on(period: int) -> date:
        return add_months(start_date, min(period * period_months, term))

    balance = principal_value
    entries: list[PaymentScheduleEntryDTO] = []

    if kind == PaymentType.AMORTIZING:
        payment = level_payment(principal_value, rate, periods)
        for period in range(1, periods + 1):
            interest = _q(balance * periodic_rate(rate_value, months_in(period)))
            principal_payment = _q(payment - interest)
            if period == periods or principal_payment > balance:
                principal_payment = balance
            balance = _q(balance - principal_payment)
            entries.append(
                PaymentScheduleEntryDTO(
                    installment_number=period,
                    due_date=due_on(period),
                    principal_amount=principal_payment,
                    interest_amount=interest,
                    total_amount=_q(principal_payment + interest),
                    remaining_balance=balance,
                )
            )
    else:
        for period in range(1, periods + 1):
            interest = _q(principal_value * periodic_rate(rate_value, months_in(period)))
            principal_payment = balance if period == periods else ZERO
            balance = _q(balance - principal_payment)
            entries.append(
                PaymentScheduleEntryDTO(
                    installment_number=period,
                    due_date=due_on(period),
                    principal_amount=principal_payment,
                    interest_amount=interest,
                    total_amount=_q(principal_payment + interest),
                    remaining_balance=balance,
                )
            )

    return entries


def build_schedule_response(
    loan: Loan,
    entries: list[PaymentScheduleEntryDTO],
    *,
    generated_at: datetime | None = None,
) -> PaymentScheduleResponse:
    total_principal = sum((entry.principal_amount for entry in entries), ZERO)
    total_interest = sum((entry.interest_amount for entry in entries), ZERO)
    return PaymentScheduleResponse(
        loan_id=loan.id,
        payment_type=loan.payment_type,
        payment_frequency=loan.payment_frequency,
        principal=_as_decimal(loan.principal),
        annual_rate_percent=_as_decimal(loan.annual_rate_percent),
        term_months=loan.term_months,
        start_date=loan.start_date,
        installment_count=len(entries),
        periodic_payment=entries[0].total_amount if entries else ZERO,
        total_principal=_q(total_principal),
        total_interest=_q(total_interest),
        total_payable=_q(total_principal + total_interest),
        generated_at=generated_at,
        entries=entries,
    )


async def _get_loan_for_update(db: AsyncSession, ctx: deps.TenantContext, loan_id: UUID) -> Loan:
    stmt = (
        select(Loan)
        .where(Loan.id == loan_id, Loan.org_id == ctx.org_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    loan = (await db.execute(stmt)).scalar_one_or_none()
    if not loan:
        raise NotFoundError("Loan not found", details={"loan_id": str(loan_id)})
    return loan


async def replace_schedule_entries(
    db: AsyncSession,
    ctx: deps.TenantContext,
    loan: Loan,
    *,
    actor_id: str | None,
) -> list[PaymentScheduleEntry]:
    """Regenerate and stage the full entry set for ``loan`` without committing.

    The caller must already hold the loan row lock.
    """
    lines = generate_schedule(
        loan.principal,
        loan.annual_rate_percent,
        loan.term_months,
        loan.start_date,
        loan.payment_type,
        loan.payment_frequency,
    )
    generated_at = datetime.now(timezone.utc)
    await db.execute(
        delete(PaymentScheduleEntry).where(
            PaymentScheduleEntry.org_id == ctx.org_id,
            PaymentScheduleEntry.loan_id == loan.id,
        )
    )
    rows = [
        PaymentScheduleEntry(
            org_id=ctx.org_id,
            loan_id=loan.id,
            installment_number=line.installment_number,
            due_date=line.due_date,
            principal_amount=line.principal_amount,
            interest_amount=line.interest_amount,
            total_amount=line.total_amount,
            remaining_balance=line.remaining_balance,
            generated_at=generated_at,
        )
        for line in lines
    ]
    db.add_all(rows)
    loan.maturity_date = lines[-1].due_date if lines else None
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan.schedule.regenerated",
        resource_type="loan",
        resource_id=loan.id,
        new_value={
            "installment_count": len(rows),
            "payment_type": loan.payment_type,
            "payment_frequency": loan.payment_frequency,
            "maturity_date": loan.maturity_date,
        },
    )
    logger.info(
        "Payment schedule regenerated",
        extra={"loan_id": str(loan.id), "installments": len(rows)},
    )
    return rows


async def update_schedule(
    db: AsyncSession,
    ctx: deps.TenantContext,
    loan_id: UUID,
    *,
    actor_id: str | None = None,
) -> PaymentScheduleResponse:
    loan = await _get_loan_for_update(db, ctx, loan_id)
    rows = await replace_schedule_entries(db, ctx, loan, actor_id=actor_id)
    await db.commit()
    entries = [PaymentScheduleEntryDTO.model_validate(row) for row in rows]
    return build_schedule_response(loan, entries, generated_at=rows[0].generated_at if rows else None)


async def get_schedule(db: AsyncSession, ctx: deps.TenantContext, loan_id: UUID) -> PaymentScheduleResponse:
    loan_stmt = select(Loan).where(Loan.id == loan_id, Loan.org_id == ctx.org_id)
    loan = (await db.execute(loan_stmt)).scalar_one_or_none()
    if not loan:
        raise NotFoundError("Loan not found", details={"loan_id": str(loan_id)})
    stmt = (
        select(PaymentScheduleEntry)
        .where(
            PaymentScheduleEntry.org_id == ctx.org_id,
            PaymentScheduleEntry.loan_id == loan.id,
        )
        .order_by(PaymentScheduleEntry.installment_number)
    )
    rows = (await db.execute(stmt)).scalars().all()
    entries = [PaymentScheduleEntryDTO.model_validate(row) for row in rows]
    generated_at = rows[0].generated_at if rows else None
    return build_schedule_response(loan, entries, generated_at=generated_at)
