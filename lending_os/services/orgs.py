from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from lending_os.models.org import Org


logger = logging.getLogger(__name__)


async def ensure_org(db: AsyncSession, org_id: str) -> Org:
    """Return the org row for ``org_id``, staging one on first use.

    Organizations are owned by the identity provider; the local row exists
    only so tenant-scoped tables have a parent to reference.
    """
    org = await db.get(Org, org_id)
    if org is None:
        org = Org(id=org_id, name=org_id, status="ACTIVE")
        db.add(org)
        logger.info("Registered organization", extra={"org_id": org_id})
    return org
