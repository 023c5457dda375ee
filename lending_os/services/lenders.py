from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.api import deps
from lending_os.models.lender import Lender
from lending_os.schemas.lender import LenderCreateRequest
from lending_os.services.audit import model_snapshot, record_audit_log
from lending_os.services.org_scoping import apply_org_filter
from lending_os.services.orgs import ensure_org


async def create_lender(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: LenderCreateRequest,
    *,
    actor_id: str | None,
) -> Lender:
    await ensure_org(db, ctx.org_id)
    lender = Lender(
        org_id=ctx.org_id,
        name=payload.name.strip(),
        entity_type=payload.entity_type,
        contact_email=payload.contact_email,
    )
    db.add(lender)
    await db.flush()
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="lender.created",
        resource_type="lender",
        resource_id=lender.id,
        new_value=model_snapshot(lender),
    )
    await db.commit()
    return lender


async def list_lenders(db: AsyncSession, ctx: deps.TenantContext) -> list[Lender]:
    stmt = apply_org_filter(select(Lender), ctx.org_id, Lender.org_id).order_by(Lender.name)
    return list((await db.execute(stmt)).scalars().all())
