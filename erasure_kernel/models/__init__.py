"""Erasure Kernel data models."""

from erasure_kernel.models.audit import AuditEvent, AuditEventKind
from erasure_kernel.models.erasure import (
    COUNTED_TARGETS,
    ERASURE_ORDER,
    ErasureAuditRecord,
    ErasureOptions,
    ErasureResult,
    ErasureTargetName,
    TargetOutcome,
    empty_outcome,
    empty_removal_map,
)
from erasure_kernel.models.notification import (
    ChannelDelivery,
    NotificationKind,
    NotificationReport,
)
from erasure_kernel.models.outcome import ErasureOutcome, ErasureStatus
from erasure_kernel.models.security import (
    AttemptOutcome,
    AttemptRecord,
    RiskTier,
    SecurityDecision,
)

__all__ = [
    "COUNTED_TARGETS",
    "ERASURE_ORDER",
    "AttemptOutcome",
    "AttemptRecord",
    "AuditEvent",
    "AuditEventKind",
    "ChannelDelivery",
    "ErasureAuditRecord",
    "ErasureOptions",
    "ErasureOutcome",
    "ErasureResult",
    "ErasureStatus",
    "ErasureTargetName",
    "NotificationKind",
    "NotificationReport",
    "RiskTier",
    "SecurityDecision",
    "TargetOutcome",
    "empty_outcome",
    "empty_removal_map",
]
