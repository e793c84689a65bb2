"""Erasure Outcome — the workflow's answer to a single erasure request."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from erasure_kernel.models.erasure import ErasureResult
from erasure_kernel.models.notification import NotificationReport
from erasure_kernel.models.security import SecurityDecision


class ErasureStatus(str, Enum):
    COMPLETED = "completed"
    PREVIEW = "preview"
    BLOCKED = "blocked"                     # Policy denied, retry after cooldown
    FAILED = "failed"                       # One or more targets faulted
    UNAUTHORIZED = "unauthorized"           # Credentials not verified upstream


class ErasureOutcome(BaseModel):
    identity: str
    status: ErasureStatus
    decision: Optional[SecurityDecision] = None
    result: Optional[ErasureResult] = None
    notification: Optional[NotificationReport] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (ErasureStatus.COMPLETED, ErasureStatus.PREVIEW)
