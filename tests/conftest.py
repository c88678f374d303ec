import sys
import os

# Ensure the repo root is on the path for all tests
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from models import Dispute
from protocol import DisputeStatus, DisputeTier, Role, REVIEW_APPROVED
from server.comments import CommentLedger
from server.directory import UserDirectory, PolicyStore
from server.engine import DisputeEngine
from server.evidence import StubEvidenceStore
from server.ledger import SubmissionLedger
from server.store import DisputeStore


T0 = 1_700_000_000.0

EVIDENCE = "The review ignored the benchmark results attached to the submission."
RESPONSE = "The benchmark was run on the wrong dataset, so the score stands."
NOTES = "Partial credit: benchmark valid but docs missing."
APPEAL = "The arbitrator did not consider the second benchmark run."
OUTCOME = "Resubmit docs, score raised to 4"

# user -> role
USERS = {
    "alice": Role.MEMBER,     # contributor / disputant
    "frank": Role.MEMBER,     # second contributor
    "bob": Role.COUNCIL,      # reviewer, also sits on the council
    "carol": Role.COUNCIL,
    "erin": Role.COUNCIL,
    "dave": Role.ADMIN,
    "mallory": Role.MEMBER,   # unrelated member
    "gus": Role.GUEST,
}


def make_dispute(**overrides) -> Dispute:
    """An in-memory Dispute between alice (disputant) and bob (reviewer)."""
    fields = {
        "id": "d1",
        "task_id": "task-100",
        "submission_id": "sub-100",
        "disputant_id": "alice",
        "reviewer_id": "bob",
        "status": DisputeStatus.OPEN,
        "tier": DisputeTier.COUNCIL,
        "reason": "rejected_unfairly",
        "created_at": T0,
        "updated_at": T0,
    }
    fields.update(overrides)
    return Dispute(**fields)


class FakeClock:
    """Controllable time source. Call it like time.time."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class World:
    """Engine wired to fresh in-memory collaborators with seeded users and work."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self.store = DisputeStore(":memory:")
        self.comments = CommentLedger(":memory:")
        self.ledger = SubmissionLedger(":memory:")
        self.directory = UserDirectory(":memory:")
        self.policy = PolicyStore(":memory:")
        self.evidence = StubEvidenceStore()
        self.engine = DisputeEngine(self.store, self.comments, self.ledger, self.directory,
                                    evidence=self.evidence, clock=self.clock)

        for user_id, role in USERS.items():
            self.directory.add_user(user_id, role)

        self.ledger.add_sprint("sprint-1", dispute_window_ends_at=None)
        self.ledger.add_task("task-100", base_points=100, sprint_id="sprint-1")
        self.ledger.add_task("task-50", base_points=50, sprint_id="sprint-1")
        self.ledger.add_submission("sub-100", "task-100", "alice", reviewer_id="bob",
                                   review_status="rejected", quality_score=1, earned_points=0)
        self.ledger.add_submission("sub-50", "task-50", "frank", reviewer_id="bob",
                                   review_status=REVIEW_APPROVED, quality_score=2, earned_points=20)
        self.ledger.add_submission("sub-pending", "task-100", "alice")

    def actor(self, user_id: str):
        return self.engine.actor(user_id)

    def file(self, submission_id: str = "sub-100", user_id: str = "alice", **kwargs) -> dict:
        """File a dispute with valid defaults."""
        kwargs.setdefault("reason", "rejected_unfairly")
        kwargs.setdefault("evidence_text", EVIDENCE)
        return self.engine.create_dispute(self.actor(user_id), submission_id, **kwargs)

    def to_review(self, arbitrator: str = "carol", **kwargs) -> dict:
        """File, respond and assign: dispute is under_review with an arbitrator."""
        dispute = self.file(**kwargs)
        self.engine.respond(self.actor("bob"), dispute["id"], RESPONSE)
        return self.engine.assign(self.actor(arbitrator), dispute["id"])

    def close(self):
        for part in (self.store, self.comments, self.ledger, self.directory, self.policy):
            part.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def world(clock):
    w = World(clock)
    yield w
    w.close()


@pytest.fixture
def engine(world):
    return world.engine
