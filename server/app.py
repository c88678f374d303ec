# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2026 Karan Sharma
"""HTTP API for the dispute engine (FastAPI).

Endpoints for the dispute lifecycle: file, respond, assign, recuse,
resolve, appeal, withdraw, mediate, comments, evidence and settlement
retry.

Authentication happens upstream: the gateway sets X-User-Id on every
request it forwards. Roles come from the user directory.
"""

import sys
import os
import logging
# Ensure parent directory is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from errors import DisputeError
from models import Actor
from server.comments import CommentLedger
from server.directory import UserDirectory, PolicyStore
from server.engine import DisputeEngine
from server.evidence import EvidenceStore
from server.ledger import SubmissionLedger
from server.store import DisputeStore

logger = logging.getLogger(__name__)

USER_HEADER = "x-user-id"
ORG_HEADER = "x-org-id"


# --- Request models ---

class CreateDisputeRequest(BaseModel):
    submission_id: str
    reason: str
    evidence_text: str
    evidence_links: list[str] = []
    request_mediation: bool = False

class RespondRequest(BaseModel):
    response_text: str
    response_links: list[str] = []

class ResolveRequest(BaseModel):
    resolution: str
    resolution_notes: str
    new_quality_score: Optional[int] = None

class AppealRequest(BaseModel):
    appeal_reason: str

class MediateRequest(BaseModel):
    agreed_outcome: str

class CommentRequest(BaseModel):
    content: str
    visibility: str = "parties_only"

class EvidenceRequest(BaseModel):
    path: str  # storage path of an already-uploaded file


# --- App factory ---

def create_app(
    store: DisputeStore | None = None,
    comments: CommentLedger | None = None,
    ledger: SubmissionLedger | None = None,
    directory: UserDirectory | None = None,
    policy: PolicyStore | None = None,
    evidence: EvidenceStore | None = None,
    clock=None,
) -> FastAPI:
    """Create FastAPI app with injected dependencies.

    Missing collaborators default to in-memory SQLite instances.
    """

    app = FastAPI(title="Dispute Engine", version="1.0")

    _store = store or DisputeStore()
    _comments = comments or CommentLedger()
    _ledger = ledger or SubmissionLedger()
    _directory = directory or UserDirectory()
    _policy = policy or PolicyStore()
    engine_kwargs = {"clock": clock} if clock else {}
    _engine = DisputeEngine(_store, _comments, _ledger, _directory, evidence=evidence, **engine_kwargs)

    # Expose for testing
    app.state.store = _store
    app.state.comments = _comments
    app.state.ledger = _ledger
    app.state.directory = _directory
    app.state.policy = _policy
    app.state.engine = _engine

    # --- Error mapping ---

    @app.exception_handler(DisputeError)
    async def dispute_error_handler(request: Request, exc: DisputeError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [{"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", "")}
                  for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "validation_error", "message": "Invalid request", "details": {"errors": errors}},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "internal_error", "message": "Internal server error"})

    # --- Helpers ---

    def _actor(request: Request) -> Actor:
        return _engine.actor(request.headers.get(USER_HEADER))

    def _config(request: Request):
        return _policy.get_config(request.headers.get(ORG_HEADER) or "default")

    # --- Routes ---

    @app.get("/disputes/config")
    async def get_config(request: Request):
        _actor(request)
        return {"config": _config(request).to_dict()}

    @app.post("/disputes", status_code=201)
    async def create_dispute(req: CreateDisputeRequest, request: Request):
        actor = _actor(request)
        dispute = _engine.create_dispute(
            actor, req.submission_id, req.reason, req.evidence_text,
            evidence_links=req.evidence_links,
            request_mediation=req.request_mediation,
            config=_config(request),
        )
        return {"dispute": dispute}

    @app.get("/disputes")
    async def list_disputes(request: Request, status: Optional[str] = None, tier: Optional[str] = None,
                            sprint_id: Optional[str] = None, mine: bool = False, limit: int = 50):
        actor = _actor(request)
        disputes = _engine.list_disputes(actor, status=status, tier=tier, sprint_id=sprint_id,
                                         mine=mine, limit=limit)
        return {"disputes": disputes}

    @app.get("/disputes/{dispute_id}")
    async def get_dispute(dispute_id: str, request: Request):
        return {"dispute": _engine.get_dispute(_actor(request), dispute_id)}

    @app.post("/disputes/{dispute_id}/respond")
    async def respond(dispute_id: str, req: RespondRequest, request: Request):
        dispute = _engine.respond(_actor(request), dispute_id, req.response_text,
                                  response_links=req.response_links, config=_config(request))
        return {"dispute": dispute}

    @app.post("/disputes/{dispute_id}/assign")
    async def assign(dispute_id: str, request: Request):
        return {"dispute": _engine.assign(_actor(request), dispute_id)}

    @app.post("/disputes/{dispute_id}/recuse")
    async def recuse(dispute_id: str, request: Request):
        return {"dispute": _engine.recuse(_actor(request), dispute_id)}

    @app.post("/disputes/{dispute_id}/resolve")
    async def resolve(dispute_id: str, req: ResolveRequest, request: Request):
        dispute = _engine.resolve(_actor(request), dispute_id, req.resolution, req.resolution_notes,
                                  new_quality_score=req.new_quality_score)
        return {"dispute": dispute}

    @app.post("/disputes/{dispute_id}/appeal")
    async def appeal(dispute_id: str, req: AppealRequest, request: Request):
        dispute = _engine.appeal(_actor(request), dispute_id, req.appeal_reason, config=_config(request))
        return {"dispute": dispute}

    @app.post("/disputes/{dispute_id}/withdraw")
    async def withdraw(dispute_id: str, request: Request):
        return {"dispute": _engine.withdraw(_actor(request), dispute_id)}

    @app.post("/disputes/{dispute_id}/mediate")
    async def mediate(dispute_id: str, req: MediateRequest, request: Request):
        dispute = _engine.mediate(_actor(request), dispute_id, req.agreed_outcome, config=_config(request))
        return {"dispute": dispute}

    @app.post("/disputes/{dispute_id}/evidence")
    async def attach_evidence(dispute_id: str, req: EvidenceRequest, request: Request):
        return {"evidence": _engine.attach_evidence(_actor(request), dispute_id, req.path)}

    @app.post("/disputes/{dispute_id}/settlement/retry")
    async def retry_settlement(dispute_id: str, request: Request):
        return {"dispute": _engine.retry_settlement(_actor(request), dispute_id)}

    @app.get("/disputes/{dispute_id}/comments")
    async def list_comments(dispute_id: str, request: Request):
        return {"comments": _engine.list_comments(_actor(request), dispute_id)}

    @app.post("/disputes/{dispute_id}/comments", status_code=201)
    async def add_comment(dispute_id: str, req: CommentRequest, request: Request):
        comment = _engine.add_comment(_actor(request), dispute_id, req.content, visibility=req.visibility)
        return {"comment": comment}

    return app
