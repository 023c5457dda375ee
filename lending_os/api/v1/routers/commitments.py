from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.core.security import Principal
from lending_os.db.session import get_db
from lending_os.schemas.fund import CommitmentCancelRequest, CommitmentDTO
from lending_os.services import funds

router = APIRouter(prefix="/commitments", tags=["funds"])


@router.post("/{commitment_id}/cancel", response_model=CommitmentDTO, summary="Cancel a commitment")
async def cancel_commitment(
    commitment_id: UUID,
    payload: CommitmentCancelRequest | None = None,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> CommitmentDTO:
    commitment = await funds.cancel_commitment(
        db,
        ctx,
        commitment_id,
        actor_id=principal.user_id,
        reason=payload.reason if payload else None,
    )
    return CommitmentDTO.model_validate(commitment)
