"""Two-party mediation consensus.

Each party proposes an outcome. A proposal that exactly matches the other
party's latest proposal closes the dispute as mediated; anything else puts
the dispute (back) into mediation and waits for the other side.
"""

import logging

from errors import Conflict, DependencyFailure, ValidationError
from models import Actor, Dispute
from policy import DisputeConfig
from protocol import DisputeStatus, EntryKind, Visibility, AGREED_OUTCOME_MIN, AGREED_OUTCOME_MAX
from transitions import Transition, plan_mediation_offer, plan_mediation_accept, plan_revert

logger = logging.getLogger(__name__)


class MediationProtocol:
    """Drives the mediation handshake over the store and the comment ledger."""

    def __init__(self, store, comments):
        self.store = store
        self.comments = comments

    def _commit(self, dispute: Dispute, transition: Transition, now: float):
        changes = {**transition.changes, "updated_at": now}
        if not self.store.compare_and_swap(dispute.id, transition.expected_status, changes, **transition.expect):
            raise Conflict("Dispute was modified concurrently; reload and retry")

    def propose(self, dispute: Dispute, actor: Actor, agreed_outcome: str,
                now: float, config: DisputeConfig) -> Dispute:
        outcome = (agreed_outcome or "").strip()
        if not AGREED_OUTCOME_MIN <= len(outcome) <= AGREED_OUTCOME_MAX:
            raise ValidationError(
                f"agreed_outcome must be {AGREED_OUTCOME_MIN}-{AGREED_OUTCOME_MAX} characters"
            )

        latest = self.comments.find_latest(dispute.id, EntryKind.MEDIATION_PROPOSAL)
        counterpart = dispute.other_party(actor.user_id)
        if latest is not None and latest.user_id == counterpart and latest.content == outcome:
            return self._accept(dispute, actor, outcome, latest.id, now)
        return self._offer(dispute, actor, outcome, now, config)

    def _offer(self, dispute: Dispute, actor: Actor, outcome: str,
               now: float, config: DisputeConfig) -> Dispute:
        transition = plan_mediation_offer(dispute, now, config)
        self._commit(dispute, transition, now)
        try:
            entry = self.comments.append(
                dispute.id, actor.user_id, outcome,
                visibility=Visibility.PARTIES_ONLY,
                kind=EntryKind.MEDIATION_PROPOSAL,
                created_at=now,
            )
        except Exception as e:
            logger.error("Recording mediation proposal on dispute %s failed, rolling back: %s", dispute.id, e)
            revert = plan_revert(dispute, transition)
            if not self.store.compare_and_swap(dispute.id, revert.expected_status,
                                               {**revert.changes, "updated_at": now}):
                logger.warning("Rollback of dispute %s skipped: row changed underneath", dispute.id)
            raise DependencyFailure("Could not record mediation proposal") from e
        if not self.store.compare_and_swap(dispute.id, DisputeStatus.MEDIATION,
                                           {"mediation_proposal_id": entry.id, "updated_at": now}):
            # Another write moved the row on; the proposal stays on record but cannot be accepted
            logger.warning("Dispute %s left mediation before proposal %s was pinned", dispute.id, entry.id)
        return self.store.get(dispute.id)

    def _accept(self, dispute: Dispute, actor: Actor, outcome: str,
                proposal_id: str, now: float) -> Dispute:
        self._commit(dispute, plan_mediation_accept(dispute, outcome, now, proposal_id), now)
        try:
            self.comments.append(
                dispute.id, actor.user_id, outcome,
                visibility=Visibility.PARTIES_ONLY,
                kind=EntryKind.MEDIATION_CONFIRMATION,
                created_at=now,
            )
        except Exception as e:
            # Dispute is already mediated; the confirmation entry is informational
            logger.warning("Recording mediation confirmation on dispute %s failed: %s", dispute.id, e)
        logger.info("Dispute %s mediated", dispute.id)
        return self.store.get(dispute.id)
