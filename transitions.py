"""Transition planning for the dispute state machine.

Given a dispute as observed and a requested action, compute the status
the commit must still find (the compare-and-swap precondition) and the
column changes to write. Nothing here touches storage; the engine hands
the Transition to DisputeStore.compare_and_swap.
"""

from dataclasses import dataclass, field

from errors import InvalidState
from models import Dispute
from policy import DisputeConfig
from protocol import (
    Action, DisputeStatus, DisputeTier, Resolution, SettlementStatus,
    ACTION_SOURCES, ASSIGN_TARGETS, RESOLUTION_STATUS, SETTLING_RESOLUTIONS,
)


@dataclass(frozen=True)
class Transition:
    action: Action
    expected_status: DisputeStatus
    changes: dict
    expect: dict = field(default_factory=dict)  # extra column preconditions

    @property
    def next_status(self) -> DisputeStatus:
        return self.changes.get("status", self.expected_status)


def _require_source(dispute: Dispute, action: Action):
    if dispute.status not in ACTION_SOURCES[action]:
        raise InvalidState(f"Cannot {action.value} a dispute in status {dispute.status.value}")


def _promoted(tier: DisputeTier) -> DisputeTier:
    """Mediation escalates to council; council and admin stay put."""
    return DisputeTier.COUNCIL if tier == DisputeTier.MEDIATION else tier


def plan_respond(dispute: Dispute, response_text: str, response_links: list[str],
                 now: float) -> Transition:
    _require_source(dispute, Action.RESPOND)
    return Transition(
        Action.RESPOND,
        dispute.status,
        {
            "response_text": response_text,
            "response_links": list(response_links),
            "response_submitted_at": now,
            "status": DisputeStatus.UNDER_REVIEW,
            "tier": _promoted(dispute.tier),
        },
        expect={"response_submitted_at": None},
    )


def plan_assign(dispute: Dispute, arbitrator_id: str) -> Transition:
    _require_source(dispute, Action.ASSIGN)
    return Transition(
        Action.ASSIGN,
        dispute.status,
        {
            "arbitrator_id": arbitrator_id,
            "status": ASSIGN_TARGETS[dispute.status],
            "tier": _promoted(dispute.tier),
        },
        expect={"arbitrator_id": None},
    )


def plan_recuse(dispute: Dispute) -> Transition:
    _require_source(dispute, Action.RECUSE)
    status = dispute.status
    if status == DisputeStatus.UNDER_REVIEW:
        status = DisputeStatus.UNDER_REVIEW if dispute.response_submitted_at is not None else DisputeStatus.OPEN
    elif status == DisputeStatus.APPEAL_REVIEW:
        status = DisputeStatus.APPEALED
    return Transition(
        Action.RECUSE,
        dispute.status,
        {"arbitrator_id": None, "status": status},
        expect={"arbitrator_id": dispute.arbitrator_id},
    )


def plan_resolve(dispute: Dispute, resolution: Resolution, notes: str,
                 new_quality_score: int | None, now: float) -> Transition:
    _require_source(dispute, Action.RESOLVE)
    settles = resolution in SETTLING_RESOLUTIONS
    return Transition(
        Action.RESOLVE,
        dispute.status,
        {
            "status": RESOLUTION_STATUS[resolution],
            "resolution": resolution,
            "resolution_notes": notes,
            "new_quality_score": new_quality_score if resolution == Resolution.COMPROMISE else None,
            "resolved_at": now,
            "settlement_status": SettlementStatus.PENDING if settles else SettlementStatus.NONE,
            "settlement_error": None,
        },
        expect={"arbitrator_id": dispute.arbitrator_id},
    )


def plan_appeal(dispute: Dispute, now: float, config: DisputeConfig) -> Transition:
    _require_source(dispute, Action.APPEAL)
    return Transition(
        Action.APPEAL,
        dispute.status,
        {
            "status": DisputeStatus.APPEALED,
            "tier": DisputeTier.ADMIN,
            "arbitrator_id": None,
            "resolution": None,
            "resolution_notes": None,
            "new_quality_score": None,
            "resolved_at": None,
            "appeal_deadline": now + config.appeal_seconds,
        },
        expect={"settlement_status": dispute.settlement_status},
    )


def plan_withdraw(dispute: Dispute) -> Transition:
    _require_source(dispute, Action.WITHDRAW)
    return Transition(Action.WITHDRAW, dispute.status, {"status": DisputeStatus.WITHDRAWN})


def plan_mediation_offer(dispute: Dispute, now: float, config: DisputeConfig) -> Transition:
    """A proposal is on the table: the dispute waits in mediation at mediation tier."""
    _require_source(dispute, Action.MEDIATE)
    # Cleared until the new proposal is recorded; nothing can be accepted meanwhile
    changes = {
        "status": DisputeStatus.MEDIATION,
        "tier": DisputeTier.MEDIATION,
        "mediation_proposal_id": None,
    }
    if dispute.mediation_deadline is None:
        changes["mediation_deadline"] = now + config.mediation_seconds
    return Transition(Action.MEDIATE, dispute.status, changes)


def plan_mediation_accept(dispute: Dispute, agreed_outcome: str, now: float,
                          proposal_id: str) -> Transition:
    """Settle on proposal `proposal_id`; fails if a newer proposal replaced it."""
    _require_source(dispute, Action.MEDIATE)
    return Transition(
        Action.MEDIATE,
        dispute.status,
        {
            "status": DisputeStatus.MEDIATED,
            "resolved_at": now,
            "resolution_notes": agreed_outcome,
        },
        expect={"mediation_proposal_id": proposal_id},
    )


def plan_revert(dispute: Dispute, applied: Transition) -> Transition:
    """Undo a committed transition, restoring the values observed before it."""
    return Transition(
        applied.action,
        applied.next_status,
        {key: getattr(dispute, key) for key in applied.changes},
    )
