from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from lending_os.core.settings import settings


def tenant_rate_limit_key(request: Request) -> str:
    """Bucket requests per tenant and client address."""
    tenant = request.headers.get("x-tenant-id") or settings.default_org_id
    return f"{tenant}:{get_remote_address(request)}"


limiter = Limiter(
    key_func=tenant_rate_limit_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)

__all__ = ["limiter", "tenant_rate_limit_key"]
