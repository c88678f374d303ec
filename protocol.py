"""Shared constants and interfaces for the dispute engine.

All modules import from here to avoid circular dependencies.
"""

from decimal import Decimal
from enum import Enum

# --- Policy defaults (overridable per organization) ---

DEFAULT_MEDIATION_HOURS = 24
DEFAULT_RESPONSE_HOURS = 48
DEFAULT_APPEAL_HOURS = 48
DEFAULT_COOLDOWN_DAYS = 7

HOUR = 3600
DAY = 24 * HOUR

# --- Input limits ---

EVIDENCE_TEXT_MIN = 20
EVIDENCE_TEXT_MAX = 5000
MAX_EVIDENCE_LINKS = 10
RESPONSE_TEXT_MIN = 20
RESPONSE_TEXT_MAX = 5000
RESOLUTION_NOTES_MIN = 10
RESOLUTION_NOTES_MAX = 3000
APPEAL_REASON_MIN = 20
APPEAL_REASON_MAX = 3000
AGREED_OUTCOME_MIN = 10
AGREED_OUTCOME_MAX = 2000
COMMENT_MAX = 2000
MAX_EVIDENCE_FILES = 5
LIST_LIMIT = 50

# Overturned submissions are restored to full marks
OVERTURN_QUALITY_SCORE = 5

# Compromise payout: fraction of base points per quality score
QUALITY_MULTIPLIERS = {
    1: Decimal("0.2"),
    2: Decimal("0.4"),
    3: Decimal("0.6"),
    4: Decimal("0.8"),
    5: Decimal("1.0"),
}


# --- Enums ---

class DisputeStatus(Enum):
    OPEN = "open"
    AWAITING_RESPONSE = "awaiting_response"
    UNDER_REVIEW = "under_review"
    MEDIATION = "mediation"
    MEDIATED = "mediated"
    APPEALED = "appealed"
    APPEAL_REVIEW = "appeal_review"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
    WITHDRAWN = "withdrawn"


class DisputeTier(Enum):
    MEDIATION = "mediation"
    COUNCIL = "council"
    ADMIN = "admin"


class Resolution(Enum):
    UPHELD = "upheld"
    OVERTURNED = "overturned"
    COMPROMISE = "compromise"
    DISMISSED = "dismissed"


class DisputeReason(Enum):
    REJECTED_UNFAIRLY = "rejected_unfairly"
    LOW_QUALITY_SCORE = "low_quality_score"
    PLAGIARISM_CLAIM = "plagiarism_claim"
    REVIEWER_BIAS = "reviewer_bias"
    OTHER = "other"


class Role(Enum):
    ADMIN = "admin"
    COUNCIL = "council"
    MEMBER = "member"
    GUEST = "guest"


class Visibility(Enum):
    PARTIES_ONLY = "parties_only"
    ARBITRATOR = "arbitrator"


class EntryKind(Enum):
    DISCUSSION = "discussion"
    MEDIATION_PROPOSAL = "mediation_proposal"
    MEDIATION_CONFIRMATION = "mediation_confirmation"


class SettlementStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class Action(Enum):
    RESPOND = "respond"
    ASSIGN = "assign"
    RECUSE = "recuse"
    RESOLVE = "resolve"
    APPEAL = "appeal"
    WITHDRAW = "withdraw"
    MEDIATE = "mediate"


TIER_ORDER = [DisputeTier.MEDIATION, DisputeTier.COUNCIL, DisputeTier.ADMIN]

TERMINAL_STATUSES = {
    DisputeStatus.RESOLVED,
    DisputeStatus.DISMISSED,
    DisputeStatus.WITHDRAWN,
    DisputeStatus.MEDIATED,
}

ACTIVE_STATUSES = set(DisputeStatus) - TERMINAL_STATUSES

PRIVILEGED_ROLES = {Role.ADMIN, Role.COUNCIL}


# --- State Machine ---

# Valid source statuses per action. Recuse and withdraw accept any
# non-terminal status; appeal starts from a terminal ruling.
ACTION_SOURCES = {
    Action.RESPOND: {DisputeStatus.OPEN, DisputeStatus.MEDIATION, DisputeStatus.AWAITING_RESPONSE},
    Action.ASSIGN: {
        DisputeStatus.OPEN,
        DisputeStatus.AWAITING_RESPONSE,
        DisputeStatus.UNDER_REVIEW,
        DisputeStatus.APPEALED,
        DisputeStatus.APPEAL_REVIEW,
    },
    Action.RECUSE: ACTIVE_STATUSES,
    Action.RESOLVE: {DisputeStatus.UNDER_REVIEW, DisputeStatus.APPEAL_REVIEW},
    Action.APPEAL: {DisputeStatus.RESOLVED, DisputeStatus.DISMISSED},
    Action.WITHDRAW: ACTIVE_STATUSES,
    Action.MEDIATE: {DisputeStatus.OPEN, DisputeStatus.MEDIATION, DisputeStatus.AWAITING_RESPONSE},
}

# Status reached by assigning an arbitrator
ASSIGN_TARGETS = {
    DisputeStatus.OPEN: DisputeStatus.UNDER_REVIEW,
    DisputeStatus.AWAITING_RESPONSE: DisputeStatus.UNDER_REVIEW,
    DisputeStatus.UNDER_REVIEW: DisputeStatus.UNDER_REVIEW,
    DisputeStatus.APPEALED: DisputeStatus.APPEAL_REVIEW,
    DisputeStatus.APPEAL_REVIEW: DisputeStatus.APPEAL_REVIEW,
}

# Terminal status reached by each resolution
RESOLUTION_STATUS = {
    Resolution.UPHELD: DisputeStatus.RESOLVED,
    Resolution.OVERTURNED: DisputeStatus.RESOLVED,
    Resolution.COMPROMISE: DisputeStatus.RESOLVED,
    Resolution.DISMISSED: DisputeStatus.DISMISSED,
}

# Resolutions that rewrite the disputed submission
SETTLING_RESOLUTIONS = {Resolution.OVERTURNED, Resolution.COMPROMISE}

# Review status the submission ledger uses for settled disputes
REVIEW_APPROVED = "approved"
REVIEW_DISPUTED = "disputed"
REVIEW_PENDING = "pending"
