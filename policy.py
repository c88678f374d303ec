"""Per-organization dispute policy.

A DisputeConfig is a plain value passed into each engine operation. Orgs
override any subset of the defaults; everything else falls back.
"""

from dataclasses import dataclass, fields, asdict

from errors import ValidationError
from protocol import (
    DEFAULT_MEDIATION_HOURS, DEFAULT_RESPONSE_HOURS, DEFAULT_APPEAL_HOURS,
    DEFAULT_COOLDOWN_DAYS, HOUR, DAY,
)


@dataclass(frozen=True)
class DisputeConfig:
    dispute_mediation_hours: float = DEFAULT_MEDIATION_HOURS
    dispute_response_hours: float = DEFAULT_RESPONSE_HOURS
    dispute_appeal_hours: float = DEFAULT_APPEAL_HOURS
    dispute_cooldown_days: float = DEFAULT_COOLDOWN_DAYS

    @property
    def mediation_seconds(self) -> float:
        return self.dispute_mediation_hours * HOUR

    @property
    def response_seconds(self) -> float:
        return self.dispute_response_hours * HOUR

    @property
    def appeal_seconds(self) -> float:
        return self.dispute_appeal_hours * HOUR

    @property
    def cooldown_seconds(self) -> float:
        return self.dispute_cooldown_days * DAY

    @classmethod
    def from_dict(cls, overrides: dict | None) -> "DisputeConfig":
        """Merge org overrides onto the defaults. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (overrides or {}).items():
            if key not in known or value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{key} must be a number")
            if value < 0:
                raise ValidationError(f"{key} cannot be negative")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)
