from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.security import Principal
from lending_os.db.session import get_db
from lending_os.schemas.fund import AllocationDTO, AllocationReturnRequest
from lending_os.services import funds

router = APIRouter(prefix="/allocations", tags=["funds"])


@router.post("/{allocation_id}/return", response_model=AllocationDTO, summary="Return capital to the fund")
async def return_capital(
    allocation_id: UUID,
    payload: AllocationReturnRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> AllocationDTO:
    allocation = await funds.return_from_loan(
        db,
        ctx,
        amount=payload.amount,
        allocation_id=allocation_id,
        returned_on=payload.returned_on,
        actor_id=principal.user_id,
    )
    return AllocationDTO.model_validate(allocation)
