"""API client for the dispute engine.

Thin HTTP client with a pluggable transport interface.
Default transport: HTTP, identifying the caller with the X-User-Id header
the auth gateway would normally set.
"""

import json
from abc import ABC, abstractmethod

import httpx

from errors import (
    DisputeError, Unauthenticated, Forbidden, NotFound, InvalidState,
    DeadlineExpired, Conflict, ValidationError, DependencyFailure,
)

ERROR_TYPES = {
    cls.code: cls for cls in (
        Unauthenticated, Forbidden, NotFound, InvalidState,
        DeadlineExpired, Conflict, ValidationError, DependencyFailure,
    )
}


def raise_for_error(status_code: int, body: dict):
    """Turn an error response back into the typed DisputeError the server raised."""
    if status_code < 400:
        return
    cls = ERROR_TYPES.get(body.get("error"), DisputeError)
    exc = cls(body.get("message", ""), body.get("details"))
    exc.http_status = status_code
    raise exc


class Transport(ABC):
    """Override this to talk to the engine some other way."""

    @abstractmethod
    async def post(self, path: str, data: dict) -> dict:
        ...

    @abstractmethod
    async def get(self, path: str, params: dict | None = None) -> dict:
        ...


class HTTPTransport(Transport):
    """Default. Talks to the dispute API over HTTP."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: str = "", org_id: str = ""):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.org_id = org_id

    def _headers(self) -> dict:
        h = {"Content-Type": "application/json"}
        if self.user_id:
            h["X-User-Id"] = self.user_id
        if self.org_id:
            h["X-Org-Id"] = self.org_id
        return h

    @staticmethod
    def _decode(resp: httpx.Response) -> dict:
        try:
            body = resp.json()
        except ValueError:
            body = {"error": "internal_error", "message": resp.text}
        raise_for_error(resp.status_code, body)
        return body

    async def post(self, path: str, data: dict) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self.base_url}{path}",
                content=json.dumps(data),
                headers=self._headers(),
                timeout=30.0,
            )
            return self._decode(resp)

    async def get(self, path: str, params: dict | None = None) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._headers(),
                timeout=30.0,
            )
            return self._decode(resp)


class DisputeClient:
    """High-level client for the dispute engine."""

    def __init__(self, transport: Transport | None = None, base_url: str = "http://localhost:8000",
                 user_id: str = ""):
        self.user_id = user_id
        if transport:
            self.transport = transport
        else:
            self.transport = HTTPTransport(base_url, user_id=user_id)

    async def get_config(self) -> dict:
        resp = await self.transport.get("/disputes/config")
        return resp["config"]

    async def create_dispute(self, submission_id: str, reason: str, evidence_text: str,
                             evidence_links: list[str] | None = None,
                             request_mediation: bool = False) -> dict:
        """File a dispute against the review of one of your submissions."""
        resp = await self.transport.post("/disputes", {
            "submission_id": submission_id,
            "reason": reason,
            "evidence_text": evidence_text,
            "evidence_links": evidence_links or [],
            "request_mediation": request_mediation,
        })
        return resp["dispute"]

    async def list_disputes(self, status: str | None = None, tier: str | None = None,
                            sprint_id: str | None = None, mine: bool = False, limit: int = 50) -> list[dict]:
        params = {"mine": mine, "limit": limit}
        if status:
            params["status"] = status
        if tier:
            params["tier"] = tier
        if sprint_id:
            params["sprint_id"] = sprint_id
        resp = await self.transport.get("/disputes", params)
        return resp["disputes"]

    async def get_dispute(self, dispute_id: str) -> dict:
        resp = await self.transport.get(f"/disputes/{dispute_id}")
        return resp["dispute"]

    async def respond(self, dispute_id: str, response_text: str,
                      response_links: list[str] | None = None) -> dict:
        """Reviewer's answer to the dispute."""
        resp = await self.transport.post(f"/disputes/{dispute_id}/respond", {
            "response_text": response_text,
            "response_links": response_links or [],
        })
        return resp["dispute"]

    async def assign(self, dispute_id: str) -> dict:
        """Take the dispute as arbitrator."""
        resp = await self.transport.post(f"/disputes/{dispute_id}/assign", {})
        return resp["dispute"]

    async def recuse(self, dispute_id: str) -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/recuse", {})
        return resp["dispute"]

    async def resolve(self, dispute_id: str, resolution: str, resolution_notes: str,
                      new_quality_score: int | None = None) -> dict:
        payload = {"resolution": resolution, "resolution_notes": resolution_notes}
        if new_quality_score is not None:
            payload["new_quality_score"] = new_quality_score
        resp = await self.transport.post(f"/disputes/{dispute_id}/resolve", payload)
        return resp["dispute"]

    async def appeal(self, dispute_id: str, appeal_reason: str) -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/appeal", {"appeal_reason": appeal_reason})
        return resp["dispute"]

    async def withdraw(self, dispute_id: str) -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/withdraw", {})
        return resp["dispute"]

    async def mediate(self, dispute_id: str, agreed_outcome: str) -> dict:
        """Propose (or confirm) a mediated outcome."""
        resp = await self.transport.post(f"/disputes/{dispute_id}/mediate", {"agreed_outcome": agreed_outcome})
        return resp["dispute"]

    async def attach_evidence(self, dispute_id: str, path: str) -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/evidence", {"path": path})
        return resp["evidence"]

    async def retry_settlement(self, dispute_id: str) -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/settlement/retry", {})
        return resp["dispute"]

    async def list_comments(self, dispute_id: str) -> list[dict]:
        resp = await self.transport.get(f"/disputes/{dispute_id}/comments")
        return resp["comments"]

    async def add_comment(self, dispute_id: str, content: str, visibility: str = "parties_only") -> dict:
        resp = await self.transport.post(f"/disputes/{dispute_id}/comments", {
            "content": content,
            "visibility": visibility,
        })
        return resp["comment"]
