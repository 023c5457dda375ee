from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.security import Principal
from lending_os.db.session import get_db
from lending_os.schemas.fund import AllocationDTO
from lending_os.schemas.loan import (
    CapitalReturnRequest,
    LoanCreateRequest,
    LoanDTO,
    LoanListResponse,
    LoanStatus,
    LoanStatusTransitionRequest,
    PaymentScheduleResponse,
)
from lending_os.services import funds, loans, payment_schedules

router = APIRouter(prefix="/loans", tags=["loans"])


@router.get("", response_model=LoanListResponse, summary="List loans")
async def list_loans(
    status_filter: LoanStatus | None = Query(default=None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> LoanListResponse:
    items = await loans.list_loans(
        db, ctx, status=status_filter, limit=page_size, offset=(page - 1) * page_size
    )
    return LoanListResponse(items=[LoanDTO.model_validate(item) for item in items], total=len(items))


@router.post("", response_model=LoanDTO, status_code=status.HTTP_201_CREATED, summary="Create a loan")
async def create_loan(
    payload: LoanCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LoanDTO:
    loan = await loans.create_loan(db, ctx, payload, actor_id=principal.user_id)
    return LoanDTO.model_validate(loan)


@router.get("/{loan_id}", response_model=LoanDTO, summary="Get a loan")
async def get_loan(
    loan_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> LoanDTO:
    return LoanDTO.model_validate(await loans.get_loan(db, ctx, loan_id))


@router.post("/{loan_id}/status", response_model=LoanDTO, summary="Move a loan to a new status")
async def transition_loan(
    loan_id: UUID,
    payload: LoanStatusTransitionRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LoanDTO:
    loan = await loans.transition_loan(
        db,
        ctx,
        loan_id,
        payload.status,
        actor_id=principal.user_id,
        effective_date=payload.effective_date,
    )
    return LoanDTO.model_validate(loan)


@router.get(
    "/{loan_id}/payment-schedule",
    response_model=PaymentScheduleResponse,
    summary="Get the stored payment schedule",
)
async def get_payment_schedule(
    loan_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> PaymentScheduleResponse:
    return await payment_schedules.get_schedule(db, ctx, loan_id)


@router.post(
    "/{loan_id}/payment-schedule",
    response_model=PaymentScheduleResponse,
    summary="Regenerate the payment schedule from the loan terms",
)
async def regenerate_payment_schedule(
    loan_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> PaymentScheduleResponse:
    return await payment_schedules.update_schedule(db, ctx, loan_id, actor_id=principal.user_id)


@router.post("/{loan_id}/return", response_model=AllocationDTO, summary="Return capital from a loan")
async def return_capital(
    loan_id: UUID,
    payload: CapitalReturnRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> AllocationDTO:
    allocation = await funds.return_from_loan(
        db,
        ctx,
        amount=payload.amount,
        loan_id=loan_id,
        fund_id=payload.fund_id,
        returned_on=payload.returned_on,
        actor_id=principal.user_id,
    )
    return AllocationDTO.model_validate(allocation)
