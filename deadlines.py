"""Deadline evaluation for time-boxed dispute actions.

Stateless comparisons against "now". Deadlines are epoch seconds; None
means the window is unbounded. Nothing here schedules anything: checks
run lazily when someone attempts an action.
"""

import time

from policy import DisputeConfig

LATE_AFTER_RESPONSE_DEADLINE = "uploaded_after_response_deadline"


def _now(now: float | None) -> float:
    return time.time() if now is None else now


def is_deadline_past(deadline: float | None, now: float | None = None) -> bool:
    """True iff a deadline exists and is strictly before now."""
    if deadline is None:
        return False
    return deadline < _now(now)


def is_dispute_window_closed(window_ends_at: float | None, now: float | None = None) -> bool:
    """True iff the sprint's dispute window has an end and it has passed."""
    return is_deadline_past(window_ends_at, now)


def compute_deadline(hours: float, now: float | None = None) -> float:
    return _now(now) + hours * 3600


def appeal_window_ends_at(resolved_at: float | None, config: DisputeConfig) -> float | None:
    if resolved_at is None:
        return None
    return resolved_at + config.appeal_seconds


def is_appeal_window_closed(resolved_at: float | None, config: DisputeConfig,
                            now: float | None = None) -> bool:
    """Appeals are allowed up to and including resolved_at + dispute_appeal_hours."""
    return is_deadline_past(appeal_window_ends_at(resolved_at, config), now)


def classify_evidence_timeliness(response_deadline: float | None,
                                 now: float | None = None) -> tuple[bool, str | None]:
    """Evidence uploaded after the reviewer's response deadline is flagged late."""
    late = is_deadline_past(response_deadline, now)
    return late, LATE_AFTER_RESPONSE_DEADLINE if late else None
