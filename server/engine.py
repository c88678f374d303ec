"""Dispute engine: the public operations.

Every mutating operation runs the same pipeline: load the dispute, run
the guard, check deadlines, validate input, plan the transition, commit
it with compare-and-swap, then run the dependent step (settlement,
mediation ledger write, appeal note). Nothing is written before the
guard and deadline checks pass.
"""

import logging
import time
from urllib.parse import urlparse

import guard
from deadlines import (
    is_deadline_past, is_dispute_window_closed, is_appeal_window_closed,
    classify_evidence_timeliness,
)
from errors import (
    Unauthenticated, NotFound, InvalidState, DeadlineExpired, Conflict, ValidationError,
)
from models import Actor, Dispute
from policy import DisputeConfig
from protocol import (
    DisputeReason, DisputeStatus, DisputeTier, EntryKind, Resolution, Role,
    SettlementStatus, Visibility, SETTLING_RESOLUTIONS, REVIEW_PENDING,
    EVIDENCE_TEXT_MIN, EVIDENCE_TEXT_MAX, MAX_EVIDENCE_LINKS,
    RESPONSE_TEXT_MIN, RESPONSE_TEXT_MAX, RESOLUTION_NOTES_MIN, RESOLUTION_NOTES_MAX,
    APPEAL_REASON_MIN, APPEAL_REASON_MAX, COMMENT_MAX, MAX_EVIDENCE_FILES, LIST_LIMIT,
)
from server.mediation import MediationProtocol
from server.settlement import SettlementManager
from transitions import (
    Transition, plan_respond, plan_assign, plan_recuse, plan_resolve, plan_appeal, plan_withdraw,
)

logger = logging.getLogger(__name__)


def _text(value: str | None, name: str, min_len: int, max_len: int) -> str:
    text = (value or "").strip()
    if not min_len <= len(text) <= max_len:
        raise ValidationError(f"{name} must be {min_len}-{max_len} characters")
    return text


def _links(links: list[str] | None, name: str) -> list[str]:
    links = list(links or [])
    if len(links) > MAX_EVIDENCE_LINKS:
        raise ValidationError(f"{name} allows at most {MAX_EVIDENCE_LINKS} links")
    for link in links:
        parsed = urlparse(link)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"{name} must contain http(s) URLs", {"url": link})
    return links


def _enum(enum_cls, value, name: str):
    try:
        return value if isinstance(value, enum_cls) else enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}")


class DisputeEngine:
    """Orchestrates guard, deadlines, transitions, store and dependent steps."""

    def __init__(self, store, comments, ledger, directory, evidence=None, clock=time.time):
        self.store = store
        self.comments = comments
        self.ledger = ledger
        self.directory = directory
        self.evidence = evidence
        self.clock = clock
        self.settlement = SettlementManager(store, ledger, directory)
        self.mediation = MediationProtocol(store, comments)

    # --- Plumbing ---

    def actor(self, user_id: str | None) -> Actor:
        """Resolve a caller id to an Actor. Users unknown to the directory act as guests."""
        if not user_id:
            raise Unauthenticated("Missing caller identity")
        return Actor(user_id, self.directory.get_role(user_id) or Role.GUEST)

    def _load(self, dispute_id: str) -> Dispute:
        dispute = self.store.get(dispute_id)
        if dispute is None:
            raise NotFound("Dispute not found")
        return dispute

    def _commit(self, dispute: Dispute, transition: Transition, now: float) -> Dispute:
        changes = {**transition.changes, "updated_at": now}
        if not self.store.compare_and_swap(dispute.id, transition.expected_status, changes, **transition.expect):
            raise Conflict("Dispute was modified concurrently; reload and retry")
        logger.info("Dispute %s: %s %s -> %s", dispute.id, transition.action.value,
                    transition.expected_status.value, transition.next_status.value)
        return self.store.get(dispute.id)

    def _sprint_window_closed(self, dispute: Dispute, now: float) -> bool:
        if not dispute.sprint_id:
            return False
        sprint = self.ledger.get_sprint(dispute.sprint_id)
        return is_dispute_window_closed(sprint and sprint.get("dispute_window_ends_at"), now)

    def _evidence_urls(self, dispute: Dispute) -> list[dict]:
        if self.evidence is None:
            return []
        urls = []
        for path in dispute.evidence_files:
            try:
                urls.append({"path": path, "url": self.evidence.signed_url(path)})
            except Exception as e:
                logger.warning("Could not sign evidence %s on dispute %s: %s", path, dispute.id, e)
        return urls

    def _view(self, dispute: Dispute, actor: Actor) -> dict:
        if not guard.can_view_full(dispute, actor):
            return dispute.redacted()
        result = dispute.to_dict()
        result["evidence_urls"] = self._evidence_urls(dispute)
        return result

    # --- Intake and reads ---

    def create_dispute(self, actor: Actor, submission_id: str, reason, evidence_text: str,
                       evidence_links: list[str] | None = None, request_mediation: bool = False,
                       config: DisputeConfig | None = None) -> dict:
        config = config or DisputeConfig()
        now = self.clock()

        submission = self.ledger.get_submission(submission_id)
        if submission is None:
            raise NotFound("Submission not found")
        guard.check_file_dispute(submission, actor)
        if not submission.get("reviewer_id") or submission.get("review_status") == REVIEW_PENDING:
            raise InvalidState("Submission has not been reviewed yet")

        reason = _enum(DisputeReason, reason, "reason")
        evidence_text = _text(evidence_text, "evidence_text", EVIDENCE_TEXT_MIN, EVIDENCE_TEXT_MAX)
        evidence_links = _links(evidence_links, "evidence_links")

        if self.store.active_for_submission(submission_id) is not None:
            raise Conflict("An active dispute already exists for this submission")
        last = self.store.latest_by_disputant(actor.user_id)
        if last is not None and last.created_at >= now - config.cooldown_seconds:
            raise Conflict(f"You must wait {config.dispute_cooldown_days:g} days between disputes")

        task = self.ledger.get_task(submission["task_id"]) or {}
        dispute = self.store.create({
            "task_id": submission["task_id"],
            "submission_id": submission_id,
            "sprint_id": task.get("sprint_id"),
            "disputant_id": actor.user_id,
            "reviewer_id": submission["reviewer_id"],
            "status": DisputeStatus.MEDIATION if request_mediation else DisputeStatus.OPEN,
            "tier": DisputeTier.MEDIATION,
            "reason": reason,
            "evidence_text": evidence_text,
            "evidence_links": evidence_links,
            "response_deadline": now + config.response_seconds,
            "mediation_deadline": now + config.mediation_seconds if request_mediation else None,
            "created_at": now,
            "updated_at": now,
        })
        if not self.ledger.mark_disputed(submission_id):
            logger.warning("Could not mark submission %s as disputed", submission_id)
        logger.info("Dispute %s filed by %s on submission %s", dispute.id, actor.user_id, submission_id)
        return self._view(dispute, actor)

    def get_dispute(self, actor: Actor, dispute_id: str) -> dict:
        return self._view(self._load(dispute_id), actor)

    def list_disputes(self, actor: Actor, status=None, tier=None, sprint_id: str | None = None,
                      mine: bool = False, limit: int = LIST_LIMIT) -> list[dict]:
        """Newest first. Members only ever see disputes they are party to."""
        status = _enum(DisputeStatus, status, "status") if status else None
        tier = _enum(DisputeTier, tier, "tier") if tier else None
        party_id = actor.user_id if mine or not actor.is_privileged else None
        disputes = self.store.list_disputes(status=status, tier=tier, sprint_id=sprint_id,
                                            party_id=party_id, limit=min(limit, LIST_LIMIT))
        return [d.to_dict() for d in disputes]

    # --- Lifecycle ---

    def respond(self, actor: Actor, dispute_id: str, response_text: str,
                response_links: list[str] | None = None, config: DisputeConfig | None = None) -> dict:
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_respond(dispute, actor)
        if is_deadline_past(dispute.response_deadline, now):
            raise DeadlineExpired("Response deadline has passed")
        if self._sprint_window_closed(dispute, now):
            raise DeadlineExpired("Dispute window is closed for this sprint")
        response_text = _text(response_text, "response_text", RESPONSE_TEXT_MIN, RESPONSE_TEXT_MAX)
        response_links = _links(response_links, "response_links")
        updated = self._commit(dispute, plan_respond(dispute, response_text, response_links, now), now)
        return self._view(updated, actor)

    def assign(self, actor: Actor, dispute_id: str, config: DisputeConfig | None = None) -> dict:
        """The caller takes the dispute as its arbitrator."""
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_assign(dispute, actor)
        updated = self._commit(dispute, plan_assign(dispute, actor.user_id), now)
        return self._view(updated, actor)

    def recuse(self, actor: Actor, dispute_id: str, config: DisputeConfig | None = None) -> dict:
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_recuse(dispute, actor)
        updated = self._commit(dispute, plan_recuse(dispute), now)
        return self._view(updated, actor)

    def resolve(self, actor: Actor, dispute_id: str, resolution, resolution_notes: str,
                new_quality_score: int | None = None, config: DisputeConfig | None = None) -> dict:
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_resolve(dispute, actor)

        resolution = _enum(Resolution, resolution, "resolution")
        notes = _text(resolution_notes, "resolution_notes", RESOLUTION_NOTES_MIN, RESOLUTION_NOTES_MAX)
        if resolution == Resolution.COMPROMISE:
            if isinstance(new_quality_score, bool) or not isinstance(new_quality_score, int) \
                    or not 1 <= new_quality_score <= 5:
                raise ValidationError("Compromise resolution requires new_quality_score between 1 and 5")
        elif new_quality_score is not None:
            raise ValidationError("new_quality_score is only allowed for compromise resolutions")

        updated = self._commit(dispute, plan_resolve(dispute, resolution, notes, new_quality_score, now), now)
        if resolution in SETTLING_RESOLUTIONS:
            updated = self.settlement.apply(updated.id, now)
        return self._view(updated, actor)

    def appeal(self, actor: Actor, dispute_id: str, appeal_reason: str,
               config: DisputeConfig | None = None) -> dict:
        config = config or DisputeConfig()
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_appeal(dispute, actor)
        if is_appeal_window_closed(dispute.resolved_at, config, now):
            raise DeadlineExpired(f"Appeals must be filed within {config.dispute_appeal_hours:g} hours of resolution")
        appeal_reason = _text(appeal_reason, "appeal_reason", APPEAL_REASON_MIN, APPEAL_REASON_MAX)

        updated = self._commit(dispute, plan_appeal(dispute, now, config), now)
        try:
            self.comments.append(
                dispute.id, actor.user_id, f"Appeal reason: {appeal_reason}",
                visibility=Visibility.ARBITRATOR, kind=EntryKind.DISCUSSION, created_at=now,
            )
        except Exception as e:
            logger.warning("Recording appeal reason on dispute %s failed: %s", dispute.id, e)
        return self._view(updated, actor)

    def withdraw(self, actor: Actor, dispute_id: str, config: DisputeConfig | None = None) -> dict:
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_withdraw(dispute, actor)
        updated = self._commit(dispute, plan_withdraw(dispute), now)
        return self._view(updated, actor)

    def mediate(self, actor: Actor, dispute_id: str, agreed_outcome: str,
                config: DisputeConfig | None = None) -> dict:
        config = config or DisputeConfig()
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_mediate(dispute, actor)
        if is_deadline_past(dispute.mediation_deadline, now):
            raise DeadlineExpired("Mediation window has expired")
        updated = self.mediation.propose(dispute, actor, agreed_outcome, now, config)
        return self._view(updated, actor)

    # --- Comments and evidence ---

    def list_comments(self, actor: Actor, dispute_id: str) -> list[dict]:
        dispute = self._load(dispute_id)
        guard.check_read_comments(dispute, actor)
        entries = self.comments.list_visible_to(dispute.id, actor.user_id, dispute.arbitrator_id,
                                                is_admin=actor.is_admin)
        return [c.to_dict() for c in entries]

    def add_comment(self, actor: Actor, dispute_id: str, content: str,
                    visibility=Visibility.PARTIES_ONLY) -> dict:
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_add_comment(dispute, actor)
        content = _text(content, "content", 1, COMMENT_MAX)
        visibility = _enum(Visibility, visibility, "visibility")
        comment = self.comments.append(dispute.id, actor.user_id, content,
                                       visibility=visibility, created_at=now)
        return comment.to_dict()

    def attach_evidence(self, actor: Actor, dispute_id: str, path: str) -> dict:
        """Record an uploaded evidence file on the dispute, flagging late uploads."""
        now = self.clock()
        dispute = self._load(dispute_id)
        guard.check_attach_evidence(dispute, actor)
        if self._sprint_window_closed(dispute, now):
            raise DeadlineExpired("Dispute window is closed for this sprint")
        path = (path or "").strip()
        if not path:
            raise ValidationError("path is required")

        files = self.store.add_evidence_file(dispute.id, path, MAX_EVIDENCE_FILES)
        if files is None:
            raise ValidationError(f"Maximum {MAX_EVIDENCE_FILES} evidence files allowed per dispute")
        is_late, late_reason = classify_evidence_timeliness(dispute.response_deadline, now)
        if is_late:
            logger.info("Late evidence %s on dispute %s from %s", path, dispute.id, actor.user_id)
        return {
            "dispute_id": dispute.id,
            "path": path,
            "uploaded_by": actor.user_id,
            "is_late": is_late,
            "late_reason": late_reason,
            "evidence_files": files,
        }

    def retry_settlement(self, actor: Actor, dispute_id: str) -> dict:
        now = self.clock()
        guard.check_retry_settlement(actor)
        dispute = self._load(dispute_id)
        if dispute.settlement_status not in (SettlementStatus.PENDING, SettlementStatus.FAILED):
            raise InvalidState(f"Nothing to retry: settlement is {dispute.settlement_status.value}")
        updated = self.settlement.apply(dispute.id, now)
        return self._view(updated, actor)
