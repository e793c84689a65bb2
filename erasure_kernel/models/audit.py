"""Audit Event — one immutable row of the security audit ledger."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict

from erasure_kernel.models.security import RiskTier


class AuditEventKind(str, Enum):
    CHECK = "check"                         # A risk check ran, allowed or not
    ATTEMPT_SUCCESS = "attempt_success"
    ATTEMPT_FAILURE = "attempt_failure"
    NOTIFICATION = "notification"


class AuditEvent(BaseModel):
    """
    Append-only security/audit event.

    Rows are never edited or deleted one by one. The only bulk mutation is
    the administrative clear on the ledger itself.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    kind: AuditEventKind
    identity: str
    origin: str
    user_agent: str
    risk_tier: RiskTier = RiskTier.LOW
    flags: List[str] = []
    details: Dict[str, Any] = {}
