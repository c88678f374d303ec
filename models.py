"""Typed records for disputes, ledger entries and callers."""

from dataclasses import dataclass, field

from protocol import (
    DisputeStatus, DisputeTier, EntryKind, Resolution, Role, SettlementStatus,
    Visibility, PRIVILEGED_ROLES, TERMINAL_STATUSES,
)

# Fields any authenticated viewer may see
REDACTED_FIELDS = (
    "id", "task_id", "submission_id", "status", "tier", "reason",
    "resolution", "created_at", "updated_at", "resolved_at",
)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""
    user_id: str
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


@dataclass
class Dispute:
    id: str
    task_id: str
    submission_id: str
    disputant_id: str
    reviewer_id: str
    status: DisputeStatus
    tier: DisputeTier
    reason: str
    created_at: float
    updated_at: float
    sprint_id: str | None = None
    arbitrator_id: str | None = None
    evidence_text: str = ""
    evidence_links: list[str] = field(default_factory=list)
    evidence_files: list[str] = field(default_factory=list)
    response_text: str | None = None
    response_links: list[str] = field(default_factory=list)
    response_submitted_at: float | None = None
    response_deadline: float | None = None
    mediation_deadline: float | None = None
    mediation_proposal_id: str | None = None  # latest open proposal entry
    appeal_deadline: float | None = None
    resolution: Resolution | None = None
    resolution_notes: str | None = None
    new_quality_score: int | None = None
    resolved_at: float | None = None
    settlement_status: SettlementStatus = SettlementStatus.NONE
    settlement: dict | None = None
    settlement_error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_party(self, user_id: str) -> bool:
        """Disputant, reviewer, or the current arbitrator."""
        return bool(user_id) and user_id in (self.disputant_id, self.reviewer_id, self.arbitrator_id)

    def other_party(self, user_id: str) -> str | None:
        if user_id == self.disputant_id:
            return self.reviewer_id
        if user_id == self.reviewer_id:
            return self.disputant_id
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "submission_id": self.submission_id,
            "sprint_id": self.sprint_id,
            "disputant_id": self.disputant_id,
            "reviewer_id": self.reviewer_id,
            "arbitrator_id": self.arbitrator_id,
            "status": self.status.value,
            "tier": self.tier.value,
            "reason": self.reason,
            "evidence_text": self.evidence_text,
            "evidence_links": list(self.evidence_links),
            "evidence_files": list(self.evidence_files),
            "response_text": self.response_text,
            "response_links": list(self.response_links),
            "response_submitted_at": self.response_submitted_at,
            "response_deadline": self.response_deadline,
            "mediation_deadline": self.mediation_deadline,
            "mediation_proposal_id": self.mediation_proposal_id,
            "appeal_deadline": self.appeal_deadline,
            "resolution": self.resolution.value if self.resolution else None,
            "resolution_notes": self.resolution_notes,
            "new_quality_score": self.new_quality_score,
            "resolved_at": self.resolved_at,
            "settlement_status": self.settlement_status.value,
            "settlement": self.settlement,
            "settlement_error": self.settlement_error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def redacted(self) -> dict:
        """Projection for viewers who are neither parties nor council/admin."""
        full = self.to_dict()
        return {k: full[k] for k in REDACTED_FIELDS}


# --- Ledger entries ---

@dataclass
class DisputeComment:
    """One immutable entry in a dispute's comment ledger."""
    id: str
    dispute_id: str
    user_id: str
    content: str
    visibility: Visibility
    created_at: float
    seq: int = 0

    kind = EntryKind.DISCUSSION

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dispute_id": self.dispute_id,
            "user_id": self.user_id,
            "kind": self.kind.value,
            "content": self.content,
            "visibility": self.visibility.value,
            "created_at": self.created_at,
        }


class DiscussionComment(DisputeComment):
    kind = EntryKind.DISCUSSION


class MediationProposal(DisputeComment):
    """A party's proposed outcome. The content is the trimmed proposal text."""
    kind = EntryKind.MEDIATION_PROPOSAL


class MediationConfirmation(DisputeComment):
    kind = EntryKind.MEDIATION_CONFIRMATION


ENTRY_TYPES = {
    EntryKind.DISCUSSION: DiscussionComment,
    EntryKind.MEDIATION_PROPOSAL: MediationProposal,
    EntryKind.MEDIATION_CONFIRMATION: MediationConfirmation,
}
