from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.errors import InvalidInputError, InvalidStateError, NotFoundError
from lending_os.models.fund import Fund
from lending_os.models.fund_call import FundCall
from lending_os.models.fund_commitment import FundCommitment
from lending_os.models.fund_distribution import FundDistribution
from lending_os.models.fund_loan_allocation import FundLoanAllocation
from lending_os.models.lender import Lender
from lending_os.models.loan import Loan
from lending_os.schemas.fund import (
    AllocationStatus,
    CapitalCallCreateRequest,
    CapitalCallStatus,
    CommitmentStatus,
    DistributionCreateRequest,
    DistributionStatus,
    FundCreateRequest,
    FundStatus,
    FundUpdateRequest,
)
from lending_os.schemas.loan import LoanStatus
from lending_os.services import fund_ledger, lifecycle
from lending_os.services.audit import model_snapshot, record_audit_log
from lending_os.services.org_scoping import apply_org_filter
from lending_os.services.orgs import ensure_org


logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


async def get_fund(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> Fund:
    stmt = apply_org_filter(select(Fund).where(Fund.id == fund_id), ctx.org_id, Fund.org_id)
    fund = (await db.execute(stmt)).scalar_one_or_none()
    if not fund:
        raise NotFoundError("Fund not found", details={"fund_id": str(fund_id)})
    return fund


async def _lock_fund(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> Fund:
    """Take the fund row lock that serialises every ledger mutation for the fund."""
    stmt = (
        apply_org_filter(select(Fund).where(Fund.id == fund_id), ctx.org_id, Fund.org_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    fund = (await db.execute(stmt)).scalar_one_or_none()
    if not fund:
        raise NotFoundError("Fund not found", details={"fund_id": str(fund_id)})
    return fund


async def _load_commitments(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> list[FundCommitment]:
    stmt = (
        apply_org_filter(
            select(FundCommitment).where(FundCommitment.fund_id == fund_id),
            ctx.org_id,
            FundCommitment.org_id,
        )
        .order_by(FundCommitment.commitment_date, FundCommitment.created_at)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars().all())


async def _load_calls(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> list[FundCall]:
    stmt = (
        apply_org_filter(select(FundCall).where(FundCall.fund_id == fund_id), ctx.org_id, FundCall.org_id)
        .order_by(FundCall.call_number)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars().all())


async def _load_allocations(
    db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID
) -> list[FundLoanAllocation]:
    stmt = (
        apply_org_filter(
            select(FundLoanAllocation).where(FundLoanAllocation.fund_id == fund_id),
            ctx.org_id,
            FundLoanAllocation.org_id,
        )
        .order_by(FundLoanAllocation.allocation_date, FundLoanAllocation.created_at)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars().all())


async def _load_balances(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> fund_ledger.FundBalances:
    commitments = await _load_commitments(db, ctx, fund_id)
    calls = await _load_calls(db, ctx, fund_id)
    allocations = await _load_allocations(db, ctx, fund_id)
    return fund_ledger.compute_balances(commitments, calls, allocations)


async def create_fund(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: FundCreateRequest,
    *,
    actor_id: str | None,
) -> Fund:
    if payload.total_capacity < 0:
        raise InvalidInputError(
            "total_capacity must be zero or positive",
            details={"total_capacity": str(payload.total_capacity)},
        )
    await ensure_org(db, ctx.org_id)
    fund = Fund(
        org_id=ctx.org_id,
        name=payload.name.strip(),
        fund_type=payload.fund_type.value,
        status=FundStatus.ACTIVE.value,
        total_capacity=payload.total_capacity,
        inception_date=payload.inception_date,
        strategy=payload.strategy,
        target_return=payload.target_return,
        management_fee_bps=payload.management_fee_bps,
        performance_fee_bps=payload.performance_fee_bps,
        created_by=actor_id,
    )
    db.add(fund)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.created",
        resource_type="fund",
        resource_id=fund.id,
        new_value=model_snapshot(fund),
    )
    await db.commit()
    return fund


async def update_fund(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    payload: FundUpdateRequest,
    *,
    actor_id: str | None,
) -> Fund:
    data = payload.model_dump(exclude_unset=True)
    if data.get("total_capacity") is not None and data["total_capacity"] < 0:
        raise InvalidInputError(
            "total_capacity must be zero or positive",
            details={"total_capacity": str(data["total_capacity"])},
        )
    fund = await _lock_fund(db, ctx, fund_id)
    if fund.status == FundStatus.LIQUIDATED.value:
        raise InvalidStateError(
            "Liquidated funds cannot be updated",
            details={"fund_id": str(fund.id), "status": fund.status},
        )
    before = model_snapshot(fund)
    if data.get("name"):
        fund.name = data["name"].strip()
    if "strategy" in data:
        fund.strategy = data["strategy"]
    if data.get("total_capacity") is not None:
        fund.total_capacity = data["total_capacity"]
    if "target_return" in data:
        fund.target_return = data["target_return"]
    if data.get("management_fee_bps") is not None:
        fund.management_fee_bps = data["management_fee_bps"]
    if data.get("performance_fee_bps") is not None:
        fund.performance_fee_bps = data["performance_fee_bps"]
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.updated",
        resource_type="fund",
        resource_id=fund.id,
        old_value=before,
        new_value=model_snapshot(fund),
    )
    await db.commit()
    logger.info("Fund updated", extra={"fund_id": str(fund.id), "fields": sorted(data)})
    return fund


async def list_funds(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    status: FundStatus | None = None,
) -> list[Fund]:
    stmt = apply_org_filter(select(Fund), ctx.org_id, Fund.org_id)
    if status is not None:
        stmt = stmt.where(Fund.status == status.value)
    stmt = stmt.order_by(Fund.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def get_fund_with_metrics(
    db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID
) -> tuple[Fund, dict]:
    fund = await get_fund(db, ctx, fund_id)
    commitments = await _load_commitments(db, ctx, fund.id)
    calls = await _load_calls(db, ctx, fund.id)
    allocations = await _load_allocations(db, ctx, fund.id)
    return fund, fund_ledger.compute_metrics(fund, commitments, calls, allocations)


async def get_balances(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> fund_ledger.FundBalances:
    fund = await get_fund(db, ctx, fund_id)
    return await _load_balances(db, ctx, fund.id)


async def close_fund(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    *,
    actor_id: str | None,
    closing_date: date | None = None,
) -> Fund:
    fund = await _lock_fund(db, ctx, fund_id)
    lifecycle.require_transition(
        lifecycle.FUND_TRANSITIONS, fund.status, FundStatus.CLOSED, resource="fund", resource_id=fund.id
    )
    before = model_snapshot(fund)
    fund.status = FundStatus.CLOSED.value
    fund.closing_date = closing_date or _today()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.closed",
        resource_type="fund",
        resource_id=fund.id,
        old_value=before,
        new_value=model_snapshot(fund),
    )
    await db.commit()
    logger.info("Fund closed", extra={"fund_id": str(fund.id)})
    return fund


async def liquidate_fund(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    *,
    actor_id: str | None,
    liquidation_date: date | None = None,
) -> Fund:
    fund = await _lock_fund(db, ctx, fund_id)
    lifecycle.require_transition(
        lifecycle.FUND_TRANSITIONS, fund.status, FundStatus.LIQUIDATED, resource="fund", resource_id=fund.id
    )
    balances = await _load_balances(db, ctx, fund.id)
    fund_ledger.ensure_can_liquidate(fund, balances)
    before = model_snapshot(fund)
    fund.status = FundStatus.LIQUIDATED.value
    fund.liquidation_date = liquidation_date or _today()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.liquidated",
        resource_type="fund",
        resource_id=fund.id,
        old_value=before,
        new_value=model_snapshot(fund),
    )
    await db.commit()
    logger.info("Fund liquidated", extra={"fund_id": str(fund.id)})
    return fund


async def record_commitment(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    *,
    lender_id: UUID,
    amount: Decimal,
    commitment_date: date | None = None,
    actor_id: str | None,
) -> FundCommitment:
    value = fund_ledger.require_positive_amount(amount)
    fund = await _lock_fund(db, ctx, fund_id)
    fund_ledger.require_fund_open(fund, operation="commitment")
    lender_stmt = apply_org_filter(select(Lender).where(Lender.id == lender_id), ctx.org_id, Lender.org_id)
    lender = (await db.execute(lender_stmt)).scalar_one_or_none()
    if not lender:
        raise NotFoundError("Lender not found", details={"lender_id": str(lender_id)})

    commitment = FundCommitment(
        org_id=ctx.org_id,
        fund_id=fund.id,
        lender_id=lender.id,
        committed_amount=value,
        commitment_date=commitment_date or _today(),
        status=CommitmentStatus.ACTIVE.value,
    )
    db.add(commitment)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.commitment.recorded",
        resource_type="fund_commitment",
        resource_id=commitment.id,
        new_value=model_snapshot(commitment),
    )
    await db.commit()
    logger.info(
        "Commitment recorded",
        extra={"fund_id": str(fund.id), "commitment_id": str(commitment.id), "amount": str(value)},
    )
    return commitment


async def list_commitments(
    db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID
) -> tuple[list[FundCommitment], Decimal]:
    fund = await get_fund(db, ctx, fund_id)
    commitments = await _load_commitments(db, ctx, fund.id)
    balances = fund_ledger.compute_balances(commitments, [], [])
    return commitments, balances.total_committed


async def cancel_commitment(
    db: AsyncSession,
    ctx: deps.TenantContext,
    commitment_id: UUID,
    *,
    actor_id: str | None,
    reason: str | None = None,
) -> FundCommitment:
    """Cancel an active commitment. Cancelling a cancelled commitment is a no-op."""
    stmt = apply_org_filter(
        select(FundCommitment).where(FundCommitment.id == commitment_id),
        ctx.org_id,
        FundCommitment.org_id,
    )
    commitment = (await db.execute(stmt)).scalar_one_or_none()
    if not commitment:
        raise NotFoundError("Commitment not found", details={"commitment_id": str(commitment_id)})
    if commitment.status == CommitmentStatus.CANCELLED.value:
        return commitment

    fund = await _lock_fund(db, ctx, commitment.fund_id)
    commitments = await _load_commitments(db, ctx, fund.id)
    commitment = next((c for c in commitments if c.id == commitment_id), commitment)
    if commitment.status == CommitmentStatus.CANCELLED.value:
        return commitment
    lifecycle.require_transition(
        lifecycle.COMMITMENT_TRANSITIONS,
        commitment.status,
        CommitmentStatus.CANCELLED,
        resource="commitment",
        resource_id=commitment.id,
    )
    calls = await _load_calls(db, ctx, fund.id)
    allocations = await _load_allocations(db, ctx, fund.id)
    balances = fund_ledger.compute_balances(commitments, calls, allocations)
    fund_ledger.ensure_can_cancel(fund, balances, commitment)

    before = model_snapshot(commitment)
    commitment.status = CommitmentStatus.CANCELLED.value
    commitment.cancelled_at = datetime.now(timezone.utc)
    commitment.cancelled_by = actor_id
    commitment.cancellation_reason = reason
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.commitment.cancelled",
        resource_type="fund_commitment",
        resource_id=commitment.id,
        old_value=before,
        new_value=model_snapshot(commitment),
    )
    await db.commit()
    return commitment


async def call_capital(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    payload: CapitalCallCreateRequest,
    *,
    actor_id: str | None,
) -> FundCall:
    value = fund_ledger.require_positive_amount(payload.amount)
    fund = await _lock_fund(db, ctx, fund_id)
    fund_ledger.require_fund_open(fund, operation="capital call")
    commitments = await _load_commitments(db, ctx, fund.id)
    calls = await _load_calls(db, ctx, fund.id)
    balances = fund_ledger.compute_balances(commitments, calls, [])
    fund_ledger.ensure_can_call(fund, balances, value)

    call_number = fund_ledger.next_call_number(calls)
    if payload.call_number is not None:
        if any(int(call.call_number) == payload.call_number for call in calls):
            raise InvalidInputError(
                "Call number already used for this fund",
                details={"fund_id": str(fund.id), "call_number": payload.call_number},
            )
        call_number = payload.call_number

    call = FundCall(
        org_id=ctx.org_id,
        fund_id=fund.id,
        call_number=call_number,
        call_amount=value,
        due_date=payload.due_date,
        status=CapitalCallStatus.PENDING.value,
        purpose=payload.purpose,
        notes=payload.notes,
    )
    db.add(call)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.capital_call.issued",
        resource_type="fund_call",
        resource_id=call.id,
        new_value=model_snapshot(call),
    )
    await db.commit()
    return call


async def list_calls(db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID) -> list[FundCall]:
    fund = await get_fund(db, ctx, fund_id)
    return await _load_calls(db, ctx, fund.id)


async def allocate_to_loan(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    *,
    loan_id: UUID,
    amount: Decimal,
    allocation_date: date | None = None,
    actor_id: str | None,
) -> FundLoanAllocation:
    value = fund_ledger.require_positive_amount(amount)
    fund = await _lock_fund(db, ctx, fund_id)
    fund_ledger.require_fund_open(fund, operation="allocation")
    loan_stmt = apply_org_filter(select(Loan).where(Loan.id == loan_id), ctx.org_id, Loan.org_id)
    loan = (await db.execute(loan_stmt)).scalar_one_or_none()
    if not loan:
        raise NotFoundError("Loan not found", details={"loan_id": str(loan_id)})
    if loan.status == LoanStatus.REJECTED.value:
        raise InvalidStateError(
            "Rejected loans cannot receive fund capital",
            details={"loan_id": str(loan.id), "status": loan.status},
        )

    balances = await _load_balances(db, ctx, fund.id)
    fund_ledger.ensure_can_allocate(fund, balances, value)

    allocation = FundLoanAllocation(
        org_id=ctx.org_id,
        fund_id=fund.id,
        loan_id=loan.id,
        allocated_amount=value,
        returned_amount=Decimal("0.00"),
        status=AllocationStatus.ACTIVE.value,
        allocation_date=allocation_date or _today(),
    )
    db.add(allocation)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.allocation.created",
        resource_type="fund_loan_allocation",
        resource_id=allocation.id,
        new_value=model_snapshot(allocation),
    )
    await db.commit()
    logger.info(
        "Capital allocated to loan",
        extra={
            "fund_id": str(fund.id),
            "loan_id": str(loan.id),
            "allocation_id": str(allocation.id),
            "amount": str(value),
            "available_after": str(balances.available_capital - value),
        },
    )
    return allocation


async def list_allocations(
    db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID
) -> list[FundLoanAllocation]:
    fund = await get_fund(db, ctx, fund_id)
    return await _load_allocations(db, ctx, fund.id)


async def _resolve_allocation(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    allocation_id: UUID | None,
    loan_id: UUID | None,
    fund_id: UUID | None,
) -> FundLoanAllocation:
    if allocation_id is not None:
        stmt = apply_org_filter(
            select(FundLoanAllocation).where(FundLoanAllocation.id == allocation_id),
            ctx.org_id,
            FundLoanAllocation.org_id,
        )
        allocation = (await db.execute(stmt)).scalar_one_or_none()
        if not allocation or allocation.status != AllocationStatus.ACTIVE.value:
            raise NotFoundError(
                "No active allocation to return capital from",
                details={"allocation_id": str(allocation_id)},
            )
        return allocation

    if loan_id is None:
        raise InvalidInputError("An allocation or loan must be given")
    stmt = apply_org_filter(
        select(FundLoanAllocation).where(
            FundLoanAllocation.loan_id == loan_id,
            FundLoanAllocation.status == AllocationStatus.ACTIVE.value,
        ),
        ctx.org_id,
        FundLoanAllocation.org_id,
    )
    if fund_id is not None:
        stmt = stmt.where(FundLoanAllocation.fund_id == fund_id)
    candidates = list((await db.execute(stmt)).scalars().all())
    if not candidates:
        raise NotFoundError(
            "No active allocation to return capital from",
            details={"loan_id": str(loan_id), "fund_id": str(fund_id) if fund_id else None},
        )
    if len(candidates) > 1:
        raise InvalidInputError(
            "Loan is funded by several allocations; specify the fund",
            details={"loan_id": str(loan_id), "fund_ids": sorted(str(a.fund_id) for a in candidates)},
        )
    return candidates[0]


async def return_from_loan(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    amount: Decimal,
    allocation_id: UUID | None = None,
    loan_id: UUID | None = None,
    fund_id: UUID | None = None,
    returned_on: date | None = None,
    actor_id: str | None,
) -> FundLoanAllocation:
    """Record capital coming back from a loan to the fund that allocated it."""
    value = fund_ledger.require_positive_amount(amount)
    target = await _resolve_allocation(db, ctx, allocation_id=allocation_id, loan_id=loan_id, fund_id=fund_id)

    fund = await _lock_fund(db, ctx, target.fund_id)
    stmt = apply_org_filter(
        select(FundLoanAllocation).where(FundLoanAllocation.id == target.id),
        ctx.org_id,
        FundLoanAllocation.org_id,
    ).execution_options(populate_existing=True)
    allocation = (await db.execute(stmt)).scalar_one_or_none() or target
    fund_ledger.ensure_can_return(allocation, value)

    before = model_snapshot(allocation)
    allocation.returned_amount = Decimal(allocation.returned_amount or 0) + value
    if allocation.outstanding_amount == 0:
        lifecycle.require_transition(
            lifecycle.ALLOCATION_TRANSITIONS,
            allocation.status,
            AllocationStatus.RETURNED,
            resource="allocation",
            resource_id=allocation.id,
        )
        allocation.status = AllocationStatus.RETURNED.value
        allocation.full_return_date = returned_on or _today()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.allocation.returned",
        resource_type="fund_loan_allocation",
        resource_id=allocation.id,
        old_value=before,
        new_value=model_snapshot(allocation),
    )
    await db.commit()
    logger.info(
        "Capital returned from loan",
        extra={
            "fund_id": str(fund.id),
            "allocation_id": str(allocation.id),
            "amount": str(value),
            "outstanding": str(allocation.outstanding_amount),
        },
    )
    return allocation


async def record_distribution(
    db: AsyncSession,
    ctx: deps.TenantContext,
    fund_id: UUID,
    payload: DistributionCreateRequest,
    *,
    actor_id: str | None,
) -> FundDistribution:
    value = fund_ledger.require_positive_amount(payload.total_amount, field="total_amount")
    fund = await _lock_fund(db, ctx, fund_id)
    if fund.status == FundStatus.LIQUIDATED.value:
        raise InvalidStateError(
            "Liquidated funds cannot make distributions",
            details={"fund_id": str(fund.id), "status": fund.status},
        )
    distribution = FundDistribution(
        org_id=ctx.org_id,
        fund_id=fund.id,
        distribution_date=payload.distribution_date,
        total_amount=value,
        distribution_type=payload.distribution_type.value,
        status=DistributionStatus.SCHEDULED.value,
        notes=payload.notes,
    )
    db.add(distribution)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="fund.distribution.recorded",
        resource_type="fund_distribution",
        resource_id=distribution.id,
        new_value=model_snapshot(distribution),
    )
    await db.commit()
    return distribution


async def list_distributions(
    db: AsyncSession, ctx: deps.TenantContext, fund_id: UUID
) -> list[FundDistribution]:
    fund = await get_fund(db, ctx, fund_id)
    stmt = (
        apply_org_filter(
            select(FundDistribution).where(FundDistribution.fund_id == fund.id),
            ctx.org_id,
            FundDistribution.org_id,
        )
        .order_by(FundDistribution.distribution_date.desc())
    )
    return list((await db.execute(stmt)).scalars().all())
