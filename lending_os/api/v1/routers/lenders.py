from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.security import Principal
from lending_os.db.session import get_db
from lending_os.schemas.lender import LenderCreateRequest, LenderDTO, LenderListResponse
from lending_os.services import lenders

router = APIRouter(prefix="/lenders", tags=["lenders"])


@router.get("", response_model=LenderListResponse, summary="List lenders")
async def list_lenders(
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> LenderListResponse:
    items = await lenders.list_lenders(db, ctx)
    return LenderListResponse(items=[LenderDTO.model_validate(item) for item in items], total=len(items))


@router.post(
    "",
    response_model=LenderDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Register a lender",
)
async def create_lender(
    payload: LenderCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LenderDTO:
    lender = await lenders.create_lender(db, ctx, payload, actor_id=principal.user_id)
    return LenderDTO.model_validate(lender)
