from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt
import pytest

from lending_os.api import deps
from lending_os.core.errors import register_exception_handlers
from lending_os.core.settings import settings
from lending_os.core.tenant import TenantMismatchError, normalize_org_id, resolve_org_id


@pytest.fixture(autouse=True)
def _base_env(monkeypatch):
    monkeypatch.setattr(settings, "default_org_id", "default")
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    yield


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/ctx")
    async def ctx_route(ctx: deps.TenantContext = Depends(deps.get_tenant_context)):
        return {"org_id": ctx.org_id}

    return app


def _token(private_pem: str, **claims) -> str:
    payload = {"sub": "user_123", **claims}
    return jwt.encode(payload, private_pem, algorithm="RS256")


def test_missing_token_is_unauthorized(idp_keys):
    client = TestClient(_build_app())
    resp = client.get("/ctx")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_garbage_token_is_unauthorized(idp_keys):
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_multi_mode_uses_token_org(idp_keys):
    client = TestClient(_build_app())
    token = _token(idp_keys, org_id="org-123")
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["org_id"] == "org-123"


def test_matching_header_is_accepted(idp_keys):
    client = TestClient(_build_app())
    token = _token(idp_keys, org_id="org-123")
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": "org-123"})
    assert resp.status_code == 200


def test_mismatched_header_is_forbidden(idp_keys):
    client = TestClient(_build_app())
    token = _token(idp_keys, org_id="org-123")
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": "org-999"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "tenant_mismatch"


def test_token_without_org_is_forbidden_in_multi_mode(idp_keys):
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {_token(idp_keys)}"})
    assert resp.status_code == 403


def test_malformed_org_is_bad_request(idp_keys):
    client = TestClient(_build_app())
    token = _token(idp_keys, org_id="bad org!")
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_tenant"


def test_single_mode_uses_default_org(idp_keys, monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "single")
    monkeypatch.setattr(settings, "default_org_id", "single-org")
    client = TestClient(_build_app())
    token = _token(idp_keys, org_id="org-123")
    resp = client.get("/ctx", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["org_id"] == "single-org"


def test_resolve_org_id_rules():
    assert resolve_org_id(mode="single", token_org_id=None, header_org_id="x", default_org_id="d") == "d"
    assert resolve_org_id(mode="multi", token_org_id=" acme ", header_org_id=None, default_org_id="d") == "acme"
    with pytest.raises(TenantMismatchError):
        resolve_org_id(mode="multi", token_org_id="acme", header_org_id="other", default_org_id="d")


@pytest.mark.parametrize("value", ["a", "x" * 65, "has space", "-leading"])
def test_normalize_org_id_rejects(value):
    with pytest.raises(ValueError):
        normalize_org_id(value)
