"""
Notification Dispatcher — best-effort alerts around account erasure.

Delivers side-channel alerts (user email, SMS, admin pager) through
pluggable channels and records every attempt in the audit ledger.

Behavioral Contract:
- Each channel runs inside its own failure boundary.
- Channel failures are logged and reported, never raised.
- A `notification` audit event is appended for every call, whatever the
  delivery outcome.
- The outcome is advisory: it never alters an erasure result.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from erasure_kernel.audit.ledger import AuditLedger
from erasure_kernel.models.audit import AuditEventKind
from erasure_kernel.models.notification import (
    ChannelDelivery,
    NotificationKind,
    NotificationReport,
)
from erasure_kernel.models.security import RiskTier

logger = logging.getLogger(__name__)

# A channel receives (identity, kind, details) and raises on delivery failure.
NotificationChannel = Callable[[str, NotificationKind, Dict[str, Any]], None]

SYSTEM_ORIGIN = "system"
SYSTEM_USER_AGENT = "notification_system"


def log_channel(identity: str, kind: NotificationKind, details: Dict[str, Any]) -> None:
    """Default channel: write the alert to the security log."""
    logger.warning(f"SECURITY_NOTIFICATION: {kind.value.upper()} - User: {identity} - Details: {details}")


class NotificationDispatcher:
    """
    Fans a notification out to registered channels.
    Production deployments register email/SMS/admin channels here.
    """

    def __init__(self, audit: AuditLedger):
        self.audit = audit
        self._channels: Dict[str, NotificationChannel] = {}
        self._register_default_channels()

    def _register_default_channels(self) -> None:
        self._channels["log"] = log_channel

    def register_channel(self, name: str, channel: NotificationChannel) -> None:
        """Register (or replace) a delivery channel."""
        self._channels[name] = channel

    def unregister_channel(self, name: str) -> None:
        self._channels.pop(name, None)

    @property
    def channels(self) -> List[str]:
        return list(self._channels)

    def notify(
        self,
        identity: str,
        kind: NotificationKind,
        details: Optional[Dict[str, Any]] = None,
    ) -> NotificationReport:
        """Deliver a notification on every channel. Never raises."""
        details = details or {}
        attempted_at = datetime.utcnow()
        deliveries = [
            self._deliver(name, channel, identity, kind, details)
            for name, channel in list(self._channels.items())
        ]

        report = NotificationReport(
            identity=identity,
            kind=kind,
            deliveries=deliveries,
            attempted_at=attempted_at,
        )
        report.audit_event_id = self._record(report, details)
        return report

    def _deliver(
        self,
        name: str,
        channel: NotificationChannel,
        identity: str,
        kind: NotificationKind,
        details: Dict[str, Any],
    ) -> ChannelDelivery:
        try:
            channel(identity, kind, details)
            return ChannelDelivery(channel=name, delivered=True)
        except Exception as e:
            logger.error(f"Notification channel '{name}' failed for {identity}: {e}")
            return ChannelDelivery(channel=name, delivered=False, error=str(e))

    def _record(self, report: NotificationReport, details: Dict[str, Any]) -> Optional[str]:
        flags = ["notification_sent"] if report.delivered else ["notification_failed"]
        try:
            return self.audit.record(
                kind=AuditEventKind.NOTIFICATION,
                identity=report.identity,
                origin=SYSTEM_ORIGIN,
                user_agent=SYSTEM_USER_AGENT,
                risk_tier=RiskTier.LOW,
                flags=flags,
                details={
                    **details,
                    "notification_type": report.kind.value,
                    "channels": [d.model_dump() for d in report.deliveries],
                },
                timestamp=report.attempted_at,
            )
        except Exception:
            logger.exception(f"Failed to write notification audit event for {report.identity}")
            return None
