"""Resolution settlement for dispute rulings.

Overturned and compromise rulings rewrite the disputed submission; an
overturn also credits the disputant's point total. compute_settlement
works out what should happen, SettlementManager applies it once.

If a collaborator write fails after the ruling is committed, the dispute
keeps its terminal status and its settlement is marked failed with the
error recorded. An admin retries it; nothing is rolled back.
"""

import logging
import threading
from decimal import Decimal, ROUND_HALF_UP

from errors import Conflict, ValidationError
from models import Dispute
from protocol import (
    Resolution, SettlementStatus, OVERTURN_QUALITY_SCORE, QUALITY_MULTIPLIERS,
    REVIEW_APPROVED,
)

logger = logging.getLogger(__name__)


def quality_points(base_points: int, quality_score: int) -> int:
    """Points earned at a quality score, rounded to the nearest point (halves up)."""
    multiplier = QUALITY_MULTIPLIERS.get(quality_score)
    if multiplier is None:
        raise ValidationError(f"quality score must be 1-5, got {quality_score}")
    return int((Decimal(base_points) * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_settlement(dispute: Dispute, base_points: int) -> dict:
    """Describe the submission rewrite and points credit for a ruling.

    credited_points is the running total this dispute has credited. After an
    appeal the credit is only the shortfall against what was already paid.
    """
    already = (dispute.settlement or {}).get("credited_points", 0)

    if dispute.resolution == Resolution.OVERTURNED:
        score = OVERTURN_QUALITY_SCORE
        earned = base_points
        credit = max(0, earned - already)
    elif dispute.resolution == Resolution.COMPROMISE:
        if dispute.new_quality_score is None:
            raise ValidationError("compromise requires a quality score")
        score = dispute.new_quality_score
        earned = quality_points(base_points, score)
        credit = 0
    else:
        raise ValueError(f"nothing to settle for resolution {dispute.resolution}")

    return {
        "resolution": dispute.resolution.value,
        "submission_id": dispute.submission_id,
        "review_status": REVIEW_APPROVED,
        "quality_score": score,
        "base_points": base_points,
        "earned_points": earned,
        "credit_points": credit,
        "credited_points": already + credit,
    }


class SettlementManager:
    """Applies settlements to the submission ledger and user directory."""

    def __init__(self, store, ledger, directory):
        self.store = store
        self.ledger = ledger
        self.directory = directory
        self._lock = threading.Lock()

    def apply(self, dispute_id: str, now: float) -> Dispute:
        """Settle a dispute whose settlement is pending or failed.

        Returns the dispute as stored afterwards. Never raises for
        collaborator failures; those are recorded on the dispute. Raises
        Conflict if the row moved while the ledgers were being written.
        """
        with self._lock:
            dispute = self.store.get(dispute_id)
            if dispute is None or dispute.settlement_status not in (SettlementStatus.PENDING, SettlementStatus.FAILED):
                return dispute

            try:
                task = self.ledger.get_task(dispute.task_id)
                if task is None:
                    raise LookupError(f"task {dispute.task_id} not found")
                record = compute_settlement(dispute, task["base_points"])
                ok = self.ledger.apply_review(
                    dispute.submission_id, record["review_status"], record["quality_score"],
                    record["earned_points"], reviewed_at=now,
                )
                if not ok:
                    raise LookupError(f"submission {dispute.submission_id} not found")
                if record["credit_points"]:
                    self.directory.credit_points(dispute.disputant_id, record["credit_points"])
            except Exception as e:
                logger.error("Settlement failed for dispute %s: %s", dispute.id, e)
                if not self.store.compare_and_swap(
                    dispute.id, dispute.status,
                    {"settlement_status": SettlementStatus.FAILED, "settlement_error": str(e), "updated_at": now},
                    settlement_status=dispute.settlement_status,
                ):
                    logger.error("Could not record settlement failure on dispute %s: row changed", dispute.id)
                return self.store.get(dispute.id)

            record["applied_at"] = now
            if not self.store.compare_and_swap(
                dispute.id, dispute.status,
                {"settlement_status": SettlementStatus.APPLIED, "settlement": record,
                 "settlement_error": None, "updated_at": now},
                settlement_status=dispute.settlement_status,
            ):
                # Ledger writes went through but the record did not; needs an operator
                logger.error("Settlement of dispute %s applied but not recorded: row changed (%s)",
                             dispute.id, record)
                raise Conflict("Dispute changed while its settlement was being applied")
            logger.info("Settled dispute %s: %s, %d points earned", dispute.id,
                        record["resolution"], record["earned_points"])
            return self.store.get(dispute.id)
