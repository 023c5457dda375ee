from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.errors import NotFoundError
from lending_os.models.lender import Lender
from lending_os.models.loan import Loan
from lending_os.schemas.loan import LoanCreateRequest, LoanStatus
from lending_os.services import lifecycle, payment_schedules
from lending_os.services.audit import model_snapshot, record_audit_log
from lending_os.services.org_scoping import apply_org_filter
from lending_os.services.orgs import ensure_org


logger = logging.getLogger(__name__)


async def create_loan(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: LoanCreateRequest,
    *,
    actor_id: str | None,
) -> Loan:
    principal, rate, term = payment_schedules.validate_terms(
        payload.principal, payload.annual_rate_percent, payload.term_months
    )
    if payload.lender_id is not None:
        stmt = apply_org_filter(select(Lender).where(Lender.id == payload.lender_id), ctx.org_id, Lender.org_id)
        if (await db.execute(stmt)).scalar_one_or_none() is None:
            raise NotFoundError("Lender not found", details={"lender_id": str(payload.lender_id)})

    await ensure_org(db, ctx.org_id)
    loan = Loan(
        org_id=ctx.org_id,
        borrower_id=payload.borrower_id,
        lender_id=payload.lender_id,
        principal=principal,
        annual_rate_percent=rate,
        term_months=term,
        payment_type=payload.payment_type,
        payment_frequency=payload.payment_frequency,
        status=LoanStatus.DRAFT.value,
        status_changed_at=datetime.now(timezone.utc),
        start_date=payload.start_date,
        created_by=actor_id,
    )
    db.add(loan)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan.created",
        resource_type="loan",
        resource_id=loan.id,
        new_value=model_snapshot(loan),
    )
    await db.commit()
    return loan


async def get_loan(db: AsyncSession, ctx: deps.TenantContext, loan_id: UUID) -> Loan:
    stmt = apply_org_filter(select(Loan).where(Loan.id == loan_id), ctx.org_id, Loan.org_id)
    loan = (await db.execute(stmt)).scalar_one_or_none()
    if not loan:
        raise NotFoundError("Loan not found", details={"loan_id": str(loan_id)})
    return loan


async def list_loans(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    status: LoanStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Loan]:
    stmt = apply_org_filter(select(Loan), ctx.org_id, Loan.org_id)
    if status is not None:
        stmt = stmt.where(Loan.status == status.value)
    stmt = stmt.order_by(Loan.created_at.desc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def transition_loan(
    db: AsyncSession,
    ctx: deps.TenantContext,
    loan_id: UUID,
    target: LoanStatus,
    *,
    actor_id: str | None,
    effective_date: date | None = None,
) -> Loan:
    """Move a loan along its lifecycle.

    Funding stamps the start date and writes the payment schedule in the
    same transaction as the status change.
    """
    stmt = (
        apply_org_filter(select(Loan).where(Loan.id == loan_id), ctx.org_id, Loan.org_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    loan = (await db.execute(stmt)).scalar_one_or_none()
    if not loan:
        raise NotFoundError("Loan not found", details={"loan_id": str(loan_id)})
    lifecycle.require_transition(
        lifecycle.LOAN_TRANSITIONS, loan.status, target, resource="loan", resource_id=loan.id
    )

    before = model_snapshot(loan)
    loan.status = target.value
    loan.status_changed_at = datetime.now(timezone.utc)
    if target == LoanStatus.FUNDED:
        loan.start_date = effective_date or loan.start_date or datetime.now(timezone.utc).date()
        await payment_schedules.replace_schedule_entries(db, ctx, loan, actor_id=actor_id)
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action=f"loan.status.{target.value}",
        resource_type="loan",
        resource_id=loan.id,
        old_value=before,
        new_value=model_snapshot(loan),
    )
    await db.commit()
    logger.info(
        "Loan status changed",
        extra={"loan_id": str(loan.id), "from_status": before.get("status"), "to_status": loan.status},
    )
    return loan
