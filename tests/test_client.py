"""Tests for client.py against a mock transport."""

import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import httpx
import pytest

from client import DisputeClient, Transport, HTTPTransport, raise_for_error
from errors import Conflict, DeadlineExpired, DisputeError, Forbidden, Unauthenticated


class MockTransport(Transport):
    def __init__(self):
        self.calls = []

    async def post(self, path, data):
        self.calls.append(("POST", path, data))
        if path == "/disputes":
            return {"dispute": {"id": "d1", "status": "open"}}
        if path.endswith("/evidence"):
            return {"evidence": {"path": data["path"], "is_late": False}}
        if path.endswith("/comments"):
            return {"comment": {"id": "c1", "content": data["content"]}}
        return {"dispute": {"id": "d1", "status": "under_review"}}

    async def get(self, path, params=None):
        self.calls.append(("GET", path, params))
        if path == "/disputes":
            return {"disputes": []}
        if path == "/disputes/config":
            return {"config": {"dispute_appeal_hours": 48}}
        if path.endswith("/comments"):
            return {"comments": []}
        return {"dispute": {"id": "d1", "status": "open"}}


@pytest.fixture
def mock_transport():
    return MockTransport()


@pytest.fixture
def dispute_client(mock_transport):
    return DisputeClient(transport=mock_transport)


# --- Transport ABC ---

def test_transport_is_abstract():
    with pytest.raises(TypeError):
        Transport()


def test_default_transport_carries_identity():
    c = DisputeClient(base_url="http://disputes.local/", user_id="alice")
    assert isinstance(c.transport, HTTPTransport)
    assert c.transport.base_url == "http://disputes.local"
    assert c.transport._headers()["X-User-Id"] == "alice"
    assert "X-Org-Id" not in c.transport._headers()


def test_org_header():
    t = HTTPTransport(user_id="alice", org_id="acme")
    assert t._headers()["X-Org-Id"] == "acme"


# --- Requests ---

@pytest.mark.asyncio
async def test_create_dispute(dispute_client, mock_transport):
    d = await dispute_client.create_dispute("sub-100", "rejected_unfairly", "Benchmarks were ignored")
    assert d["id"] == "d1"
    assert mock_transport.calls[-1] == ("POST", "/disputes", {
        "submission_id": "sub-100",
        "reason": "rejected_unfairly",
        "evidence_text": "Benchmarks were ignored",
        "evidence_links": [],
        "request_mediation": False,
    })


@pytest.mark.asyncio
async def test_list_disputes_params(dispute_client, mock_transport):
    result = await dispute_client.list_disputes(status="open", limit=10)
    assert result == []
    assert mock_transport.calls[-1] == ("GET", "/disputes", {"mine": False, "limit": 10, "status": "open"})


@pytest.mark.asyncio
async def test_resolve_omits_score_unless_given(dispute_client, mock_transport):
    await dispute_client.resolve("d1", "upheld", "Review was fair")
    assert "new_quality_score" not in mock_transport.calls[-1][2]
    await dispute_client.resolve("d1", "compromise", "Partial credit", new_quality_score=4)
    assert mock_transport.calls[-1] == ("POST", "/disputes/d1/resolve", {
        "resolution": "compromise", "resolution_notes": "Partial credit", "new_quality_score": 4,
    })


@pytest.mark.asyncio
async def test_lifecycle_paths(dispute_client, mock_transport):
    await dispute_client.respond("d1", "The score stands")
    await dispute_client.assign("d1")
    await dispute_client.recuse("d1")
    await dispute_client.appeal("d1", "New benchmark run")
    await dispute_client.withdraw("d1")
    await dispute_client.mediate("d1", "Resubmit docs")
    await dispute_client.retry_settlement("d1")
    paths = [call[1] for call in mock_transport.calls]
    assert paths == [
        "/disputes/d1/respond", "/disputes/d1/assign", "/disputes/d1/recuse",
        "/disputes/d1/appeal", "/disputes/d1/withdraw", "/disputes/d1/mediate",
        "/disputes/d1/settlement/retry",
    ]


@pytest.mark.asyncio
async def test_comments_and_evidence(dispute_client, mock_transport):
    comment = await dispute_client.add_comment("d1", "See run #2", visibility="arbitrator")
    assert comment["content"] == "See run #2"
    assert mock_transport.calls[-1][2] == {"content": "See run #2", "visibility": "arbitrator"}
    assert await dispute_client.list_comments("d1") == []
    evidence = await dispute_client.attach_evidence("d1", "alice/run2.png")
    assert evidence["path"] == "alice/run2.png"


@pytest.mark.asyncio
async def test_get_config(dispute_client):
    config = await dispute_client.get_config()
    assert config["dispute_appeal_hours"] == 48


# --- Error mapping ---

def test_raise_for_error_maps_codes():
    with pytest.raises(Forbidden) as exc:
        raise_for_error(403, {"error": "forbidden", "message": "Only the disputant can withdraw"})
    assert exc.value.message == "Only the disputant can withdraw"
    with pytest.raises(DeadlineExpired):
        raise_for_error(409, {"error": "deadline_expired", "message": "late"})
    with pytest.raises(Conflict):
        raise_for_error(409, {"error": "conflict", "message": "raced"})


def test_raise_for_error_unknown_code():
    with pytest.raises(DisputeError) as exc:
        raise_for_error(500, {"error": "internal_error", "message": "boom"})
    assert exc.value.http_status == 500


def test_raise_for_error_success_is_silent():
    raise_for_error(200, {"dispute": {}})


def test_decode_non_json_body():
    resp = httpx.Response(502, text="Bad Gateway")
    with pytest.raises(DisputeError) as exc:
        HTTPTransport._decode(resp)
    assert exc.value.message == "Bad Gateway"


def test_decode_unauthenticated():
    resp = httpx.Response(401, json={"error": "unauthenticated", "message": "Missing caller identity"})
    with pytest.raises(Unauthenticated):
        HTTPTransport._decode(resp)
