#!/usr/bin/env python3
"""Dispute engine server.

Configuration comes from environment variables; the evidence signing
secret is never in code.
"""

import os, sys, logging
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import uvicorn
from server.app import create_app
from server.comments import CommentLedger
from server.directory import UserDirectory, PolicyStore
from server.evidence import HMACEvidenceStore
from server.ledger import SubmissionLedger
from server.store import DisputeStore

DB_PATH = os.environ.get("DISPUTES_DB", "/var/lib/disputes/disputes.db")
HOST = os.environ.get("DISPUTES_HOST", "0.0.0.0")
PORT = int(os.environ.get("DISPUTES_PORT", "8000"))
EVIDENCE_URL = os.environ.get("DISPUTES_EVIDENCE_URL", "")
EVIDENCE_SECRET = os.environ.get("DISPUTES_EVIDENCE_SECRET", "")
LOG_LEVEL = os.environ.get("DISPUTES_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger("disputes")

if EVIDENCE_URL and not EVIDENCE_SECRET:
    logger.error("DISPUTES_EVIDENCE_SECRET env var required when DISPUTES_EVIDENCE_URL is set")
    sys.exit(1)


# --- Main ---
os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)

store = DisputeStore(DB_PATH)
comments = CommentLedger(DB_PATH.replace(".db", "_comments.db"))
ledger = SubmissionLedger(DB_PATH.replace(".db", "_ledger.db"))
directory = UserDirectory(DB_PATH.replace(".db", "_users.db"))
policy = PolicyStore(DB_PATH.replace(".db", "_policy.db"))
evidence = HMACEvidenceStore(EVIDENCE_URL, EVIDENCE_SECRET) if EVIDENCE_URL else None

app = create_app(store=store, comments=comments, ledger=ledger, directory=directory,
                 policy=policy, evidence=evidence)

logger.info("Database: %s", DB_PATH)
logger.info("Evidence URLs: %s", "signed" if evidence else "disabled")
logger.info("Listening on %s:%d", HOST, PORT)

uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
