from __future__ import annotations

import re


ORG_ID_MIN_LENGTH = 2
ORG_ID_MAX_LENGTH = 64
_ORG_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class TenantMismatchError(ValueError):
    pass


def normalize_org_id(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < ORG_ID_MIN_LENGTH or len(cleaned) > ORG_ID_MAX_LENGTH:
        raise ValueError(
            f"org_id must be between {ORG_ID_MIN_LENGTH} and {ORG_ID_MAX_LENGTH} characters"
        )
    if not _ORG_ID_RE.fullmatch(cleaned):
        raise ValueError("org_id may only contain letters, numbers, '-' and '_'")
    return cleaned


def resolve_org_id(
    *,
    mode: str,
    token_org_id: str | None,
    header_org_id: str | None,
    default_org_id: str,
) -> str:
    """Pick the organization a request operates on.

    Single-tenant deployments always use ``default_org_id``. In multi-tenant
    mode the identity token is authoritative; a tenant header may only repeat it.
    """
    if mode != "multi":
        return default_org_id
    if not token_org_id:
        raise TenantMismatchError("Token does not carry an organization")
    org_id = normalize_org_id(token_org_id)
    if header_org_id and normalize_org_id(header_org_id) != org_id:
        raise TenantMismatchError("Tenant header does not match token")
    return org_id
