from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.security import Principal
from lending_os.db.session import get_db
from lending_os.schemas.fund import (
    AllocationCreateRequest,
    AllocationDTO,
    AllocationListResponse,
    CapitalCallCreateRequest,
    CapitalCallDTO,
    CapitalCallListResponse,
    CommitmentCreateRequest,
    CommitmentDTO,
    CommitmentListResponse,
    DistributionCreateRequest,
    DistributionDTO,
    DistributionListResponse,
    FundCreateRequest,
    FundDetailResponse,
    FundDTO,
    FundListResponse,
    FundMetricsDTO,
    FundStatus,
    FundUpdateRequest,
)
from lending_os.services import funds

router = APIRouter(prefix="/funds", tags=["funds"])


@router.get("", response_model=FundListResponse, summary="List funds")
async def list_funds(
    status_filter: FundStatus | None = Query(default=None, alias="status"),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> FundListResponse:
    items = await funds.list_funds(db, ctx, status=status_filter)
    return FundListResponse(items=[FundDTO.model_validate(item) for item in items], total=len(items))


@router.post("", response_model=FundDTO, status_code=status.HTTP_201_CREATED, summary="Create a fund")
async def create_fund(
    payload: FundCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> FundDTO:
    fund = await funds.create_fund(db, ctx, payload, actor_id=principal.user_id)
    return FundDTO.model_validate(fund)


@router.get("/{fund_id}", response_model=FundDetailResponse, summary="Get a fund with capital metrics")
async def get_fund(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> FundDetailResponse:
    fund, metrics = await funds.get_fund_with_metrics(db, ctx, fund_id)
    return FundDetailResponse(fund=FundDTO.model_validate(fund), metrics=FundMetricsDTO(**metrics))


@router.patch("/{fund_id}", response_model=FundDTO, summary="Update fund terms")
async def update_fund(
    fund_id: UUID,
    payload: FundUpdateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> FundDTO:
    fund = await funds.update_fund(db, ctx, fund_id, payload, actor_id=principal.user_id)
    return FundDTO.model_validate(fund)


@router.post("/{fund_id}/close",response_model=FundDTO, summary="Close a fund to new capital activity")
async def close_fund(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> FundDTO:
    fund = await funds.close_fund(db, ctx, fund_id, actor_id=principal.user_id)
    return FundDTO.model_validate(fund)


@router.post("/{fund_id}/liquidate", response_model=FundDTO, summary="Liquidate a closed fund")
async def liquidate_fund(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> FundDTO:
    fund = await funds.liquidate_fund(db, ctx, fund_id, actor_id=principal.user_id)
    return FundDTO.model_validate(fund)


@router.get("/{fund_id}/commitments", response_model=CommitmentListResponse, summary="List commitments")
async def list_commitments(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> CommitmentListResponse:
    items, total_active = await funds.list_commitments(db, ctx, fund_id)
    return CommitmentListResponse(
        items=[CommitmentDTO.model_validate(item) for item in items],
        total=len(items),
        total_active_committed=total_active,
    )


@router.post(
    "/{fund_id}/commitments",
    response_model=CommitmentDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Record a lender commitment",
)
async def record_commitment(
    fund_id: UUID,
    payload: CommitmentCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> CommitmentDTO:
    commitment = await funds.record_commitment(
        db,
        ctx,
        fund_id,
        lender_id=payload.lender_id,
        amount=payload.amount,
        commitment_date=payload.commitment_date,
        actor_id=principal.user_id,
    )
    return CommitmentDTO.model_validate(commitment)


@router.get("/{fund_id}/calls", response_model=CapitalCallListResponse, summary="List capital calls")
async def list_calls(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> CapitalCallListResponse:
    items = await funds.list_calls(db, ctx, fund_id)
    return CapitalCallListResponse(
        items=[CapitalCallDTO.model_validate(item) for item in items], total=len(items)
    )


@router.post(
    "/{fund_id}/calls",
    response_model=CapitalCallDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a capital call",
)
async def call_capital(
    fund_id: UUID,
    payload: CapitalCallCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> CapitalCallDTO:
    call = await funds.call_capital(db, ctx, fund_id, payload, actor_id=principal.user_id)
    return CapitalCallDTO.model_validate(call)


@router.get("/{fund_id}/allocations", response_model=AllocationListResponse, summary="List loan allocations")
async def list_allocations(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> AllocationListResponse:
    items = await funds.list_allocations(db, ctx, fund_id)
    return AllocationListResponse(
        items=[AllocationDTO.model_validate(item) for item in items], total=len(items)
    )


@router.post(
    "/{fund_id}/allocations",
    response_model=AllocationDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Allocate fund capital to a loan",
)
async def allocate_to_loan(
    fund_id: UUID,
    payload: AllocationCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> AllocationDTO:
    allocation = await funds.allocate_to_loan(
        db,
        ctx,
        fund_id,
        loan_id=payload.loan_id,
        amount=payload.amount,
        allocation_date=payload.allocation_date,
        actor_id=principal.user_id,
    )
    return AllocationDTO.model_validate(allocation)


@router.get("/{fund_id}/distributions", response_model=DistributionListResponse, summary="List distributions")
async def list_distributions(
    fund_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> DistributionListResponse:
    items = await funds.list_distributions(db, ctx, fund_id)
    return DistributionListResponse(
        items=[DistributionDTO.model_validate(item) for item in items], total=len(items)
    )


@router.post(
    "/{fund_id}/distributions",
    response_model=DistributionDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Record a fund distribution",
)
async def record_distribution(
    fund_id: UUID,
    payload: DistributionCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DistributionDTO:
    distribution = await funds.record_distribution(db, ctx, fund_id, payload, actor_id=principal.user_id)
    return DistributionDTO.model_validate(distribution)
