from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lending_os.core.context import set_actor_id, set_tenant_id
from lending_os.core.errors import UnauthorizedError
from lending_os.core.security import Principal, decode_identity_token, principal_from_claims
from lending_os.core.settings import settings
from lending_os.core.tenant import TenantMismatchError, resolve_org_id


@dataclass(slots=True)
class TenantContext:
    org_id: str


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    claims = decode_identity_token(credentials.credentials)
    principal = principal_from_claims(claims)
    set_actor_id(principal.user_id)
    return principal


async def get_tenant_context(
    principal: Principal = Depends(get_current_principal),
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    try:
        org_id = resolve_org_id(
            mode=settings.tenancy_mode,
            token_org_id=principal.org_id,
            header_org_id=tenant_id,
            default_org_id=settings.default_org_id,
        )
    except TenantMismatchError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "tenant_mismatch", "message": str(exc)},
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_tenant", "message": str(exc)},
        ) from exc
    set_tenant_id(org_id)
    return TenantContext(org_id=org_id)
