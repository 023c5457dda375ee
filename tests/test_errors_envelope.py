import json
import logging

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from lending_os.core.errors import (
    InsufficientCapitalError,
    InvalidStateError,
    NotFoundError,
    register_exception_handlers,
)
from lending_os.core.logging import JsonFormatter
from lending_os.core.response_envelope import register_response_envelope


class Body(BaseModel):
    amount: int


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    register_response_envelope(app)

    @app.get("/ok")
    async def ok():
        return {"value": 1}

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Fund not found", details={"fund_id": "abc"})

    @app.get("/short")
    async def short():
        raise InsufficientCapitalError("Not enough", details={"available": "10.00"})

    @app.get("/state")
    async def state():
        raise InvalidStateError("Closed")

    @app.get("/http")
    async def http():
        raise HTTPException(status_code=403, detail={"code": "tenant_mismatch", "message": "nope"})

    @app.post("/body")
    async def body(payload: Body):
        return payload

    return app


client = TestClient(_build_app(), raise_server_exceptions=False)


def test_success_is_wrapped():
    resp = client.get("/ok")
    assert resp.json() == {"success": True, "data": {"value": 1}}


def test_lending_errors_map_to_status_and_code():
    resp = client.get("/missing")
    assert resp.status_code == 404
    assert resp.json() == {
        "success": False,
        "error": "Fund not found",
        "code": "not_found",
        "details": {"fund_id": "abc"},
    }

    resp = client.get("/short")
    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_capital"
    assert resp.json()["details"]["available"] == "10.00"

    resp = client.get("/state")
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state"


def test_http_exception_detail_dict_is_used():
    resp = client.get("/http")
    assert resp.status_code == 403
    assert resp.json()["code"] == "tenant_mismatch"
    assert resp.json()["error"] == "nope"


def test_validation_error_names_field():
    resp = client.post("/body", json={"amount": "many"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["error"].startswith("amount:")


def test_json_formatter_carries_context_and_extra():
    record = logging.LogRecord("lending_os.test", logging.WARNING, __file__, 1, "Allocation rejected", None, None)
    record.fund_id = "f-1"
    for key, value in {"tenant_id": "org-a", "request_id": "req-1", "actor_id": "-"}.items():
        setattr(record, key, value)

    payload = json.loads(JsonFormatter(stream_label="audit").format(record))

    assert payload["level"] == "WARNING"
    assert payload["stream"] == "audit"
    assert payload["tenant_id"] == "org-a"
    assert payload["context"] == {"fund_id": "f-1"}
