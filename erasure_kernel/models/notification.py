"""Notification models — what the dispatcher attempted and how it went."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class NotificationKind(str, Enum):
    DELETION_SUCCESS = "deletion_success"
    DELETION_BLOCKED = "deletion_blocked"
    DELETION_FAILED = "deletion_failed"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class ChannelDelivery(BaseModel):
    channel: str
    delivered: bool
    error: Optional[str] = None


class NotificationReport(BaseModel):
    """
    Outcome of one best-effort notification.

    Purely advisory: nothing here ever feeds back into an erasure result.
    """

    identity: str
    kind: NotificationKind
    deliveries: List[ChannelDelivery] = []
    audit_event_id: Optional[str] = None
    attempted_at: datetime

    @property
    def delivered(self) -> bool:
        return any(d.delivered for d in self.deliveries)

    def failures(self) -> Dict[str, str]:
        return {d.channel: d.error or "" for d in self.deliveries if not d.delivered}
