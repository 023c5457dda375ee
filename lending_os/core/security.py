from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt

from lending_os.core.errors import UnauthorizedError
from lending_os.core.settings import settings


class IdentityKeyError(RuntimeError):
    pass


@dataclass(slots=True)
class Principal:
    """Caller identity as asserted by the identity provider."""

    user_id: str
    org_id: str | None
    roles: list[str] = field(default_factory=list)


@lru_cache(maxsize=1)
def _load_public_key() -> str:
    if settings.idp_jwt_public_key:
        return settings.idp_jwt_public_key
    if settings.idp_jwt_public_key_path:
        return _read_key(settings.idp_jwt_public_key_path)
    raise IdentityKeyError("Identity provider public key not configured")


def _read_key(path: str) -> str:
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


def decode_identity_token(token: str) -> dict[str, Any]:
    options = {"verify_aud": settings.idp_jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            _load_public_key(),
            algorithms=[settings.idp_jwt_algorithm],
            audience=settings.idp_jwt_audience,
            issuer=settings.idp_jwt_issuer,
            options=options,
        )
    except JWTError as exc:
        raise UnauthorizedError("Invalid token") from exc


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError("Token is missing a subject")
    org_id = claims.get(settings.idp_org_claim)
    roles = claims.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Principal(user_id=str(subject), org_id=str(org_id) if org_id else None, roles=list(roles))
