"""Conflict & authorization guard.

One check per action, each given the dispute as observed and the acting
user. Checks raise before anything is written: identity and role first
(Forbidden), then terminal/status (InvalidState), then duplicates
(Conflict).
"""

from errors import Forbidden, InvalidState, Conflict
from models import Actor, Dispute
from protocol import Action, DisputeTier, Role, SettlementStatus, ACTION_SOURCES


def _require_active(dispute: Dispute, message: str):
    if dispute.is_terminal:
        raise InvalidState(message)


def _require_source(dispute: Dispute, action: Action, message: str):
    if dispute.status not in ACTION_SOURCES[action]:
        raise InvalidState(message)


def check_respond(dispute: Dispute, actor: Actor):
    if actor.user_id != dispute.reviewer_id:
        raise Forbidden("Only the original reviewer can respond")
    _require_active(dispute, "Dispute is already closed")
    if dispute.response_submitted_at is not None:
        raise Conflict("Response already submitted")
    _require_source(dispute, Action.RESPOND, "Dispute is not in a state that accepts responses")


def check_mediate(dispute: Dispute, actor: Actor):
    if actor.user_id not in (dispute.disputant_id, dispute.reviewer_id):
        raise Forbidden("Only dispute parties can mediate")
    _require_active(dispute, "Dispute is already closed")
    _require_source(dispute, Action.MEDIATE, "Dispute is not in a state that allows mediation")


def check_assign(dispute: Dispute, actor: Actor):
    if not actor.is_privileged:
        raise Forbidden("Only council or admin members can be arbitrators")
    if actor.user_id == dispute.reviewer_id:
        raise Forbidden("The original reviewer cannot arbitrate this dispute")
    if dispute.tier == DisputeTier.ADMIN and actor.role != Role.ADMIN:
        raise Forbidden("Admin-tier disputes can only be assigned to admins")
    _require_active(dispute, "Cannot assign an arbitrator to a closed dispute")
    _require_source(dispute, Action.ASSIGN, "Dispute is not in an assignable state")
    if dispute.arbitrator_id is not None:
        raise Conflict("Dispute already has an assigned arbitrator")


def check_recuse(dispute: Dispute, actor: Actor):
    if dispute.arbitrator_id is None:
        # Nobody to recuse; a closed dispute reports its state
        _require_active(dispute, "Cannot recuse from a completed dispute")
        raise Forbidden("You are not the assigned arbitrator")
    if actor.user_id != dispute.arbitrator_id:
        raise Forbidden("You are not the assigned arbitrator")
    _require_active(dispute, "Cannot recuse from a completed dispute")


def check_resolve(dispute: Dispute, actor: Actor):
    is_arbitrator = dispute.arbitrator_id is not None and actor.user_id == dispute.arbitrator_id
    if not actor.is_admin and not (is_arbitrator and actor.is_privileged):
        raise Forbidden("You are not the assigned arbitrator for this dispute")
    if actor.user_id == dispute.reviewer_id:
        raise Forbidden("The original reviewer cannot arbitrate this dispute")
    if dispute.tier == DisputeTier.ADMIN and not actor.is_admin:
        raise Forbidden("Admin-tier disputes can only be resolved by admins")
    _require_active(dispute, "Dispute is already closed")
    _require_source(dispute, Action.RESOLVE, "Dispute is not in a resolvable state")


def check_appeal(dispute: Dispute, actor: Actor):
    if actor.user_id != dispute.disputant_id:
        raise Forbidden("Only the disputant can appeal")
    if dispute.tier == DisputeTier.ADMIN:
        raise InvalidState("Admin rulings are final and cannot be appealed")
    _require_source(dispute, Action.APPEAL, "Can only appeal resolved or dismissed disputes")
    if dispute.settlement_status in (SettlementStatus.PENDING, SettlementStatus.FAILED):
        raise InvalidState("The ruling has not been settled yet; appeal once settlement is applied")


def check_withdraw(dispute: Dispute, actor: Actor):
    if actor.user_id != dispute.disputant_id:
        raise Forbidden("Only the disputant can withdraw")
    _require_active(dispute, "Dispute is already in a terminal state")


def can_view_full(dispute: Dispute, actor: Actor) -> bool:
    """Parties and council/admin see evidence and the reviewer's response."""
    return dispute.is_party(actor.user_id) or actor.is_privileged


def check_read_comments(dispute: Dispute, actor: Actor):
    if not dispute.is_party(actor.user_id) and not actor.is_admin:
        raise Forbidden("Only dispute parties and admins can view comments")


def check_add_comment(dispute: Dispute, actor: Actor):
    if not dispute.is_party(actor.user_id) and not actor.is_admin:
        raise Forbidden("Only dispute parties and admins can add comments")
    _require_active(dispute, "Cannot comment on a closed dispute")


def check_attach_evidence(dispute: Dispute, actor: Actor):
    if not dispute.is_party(actor.user_id) and not actor.is_privileged:
        raise Forbidden("Only dispute parties can upload dispute evidence")
    _require_active(dispute, "Cannot upload evidence to a closed dispute")


def check_file_dispute(submission: dict, actor: Actor):
    """Intake checks that depend only on identity."""
    if actor.role == Role.GUEST:
        raise Forbidden("Guests cannot file disputes")
    if submission.get("user_id") != actor.user_id:
        raise Forbidden("You can only dispute your own submissions")
    if submission.get("reviewer_id") == actor.user_id:
        raise Forbidden("You cannot dispute your own review")


def check_retry_settlement(actor: Actor):
    if not actor.is_admin:
        raise Forbidden("Only admins can retry a settlement")
