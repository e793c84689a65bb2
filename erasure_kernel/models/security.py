"""Security gate models — attempt history and per-request decisions."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def escalate(cls, current: "RiskTier", target: "RiskTier") -> "RiskTier":
        """Return the higher of two tiers. Tiers never go down."""
        return current if current.rank >= target.rank else target


_TIER_RANK = {RiskTier.LOW: 1, RiskTier.MEDIUM: 2, RiskTier.HIGH: 3}


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class AttemptRecord(BaseModel):
    """One erasure attempt, allowed or blocked. Never mutated."""

    model_config = ConfigDict(frozen=True)

    identity: str                           # Account key (email)
    timestamp: datetime
    origin: str                             # Client network address
    user_agent: str
    outcome: AttemptOutcome
    risk_tier: RiskTier
    flags: List[str] = []
    reason: Optional[str] = None


class SecurityDecision(BaseModel):
    """The risk assessor's ruling on a single erasure request."""

    allowed: bool
    risk_tier: RiskTier
    flags: List[str] = []
    reason: Optional[str] = None            # Human-readable
    additional_verification_required: bool = False
    blocked_until: Optional[datetime] = None
    evaluated_at: datetime
