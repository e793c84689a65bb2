"""Erasure models — targets, options and the per-run result."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ErasureTargetName(str, Enum):
    """The twelve stores swept on every erasure, in sweep order."""

    PROFILE = "profile"
    SESSIONS = "sessions"
    VERIFICATIONS = "verifications"
    PASSWORD_RESETS = "password_resets"
    RATE_LIMIT_DATA = "rate_limit_data"
    PREFERENCES = "preferences"
    CONTENT = "content"
    ANALYTICS = "analytics"
    SUBSCRIPTIONS = "subscriptions"
    FILE_STORAGE = "file_storage"
    CACHE = "cache"
    BACKUPS = "backups"


ERASURE_ORDER: List[ErasureTargetName] = list(ErasureTargetName)

# Multi-row targets report a count; every other target reports a bool.
COUNTED_TARGETS = frozenset({ErasureTargetName.SESSIONS})

TargetOutcome = Union[bool, int]


def empty_outcome(name: ErasureTargetName) -> TargetOutcome:
    """The outcome a target reports when nothing was removed."""
    return 0 if name in COUNTED_TARGETS else False


def empty_removal_map() -> Dict[ErasureTargetName, TargetOutcome]:
    return {name: empty_outcome(name) for name in ERASURE_ORDER}


class ErasureOptions(BaseModel):
    skip_backups: bool = False
    dry_run: bool = False


class ErasureAuditRecord(BaseModel):
    """Who asked for the erasure, from where, and when it started."""

    identity: str
    timestamp: datetime
    initiator: str                          # e.g. "user_self_deletion", "admin"
    origin: Optional[str] = None
    user_agent: Optional[str] = None


class ErasureResult(BaseModel):
    """Aggregated outcome of one orchestrator run."""

    success: bool = False
    removed: Dict[ErasureTargetName, TargetOutcome] = Field(
        default_factory=empty_removal_map
    )
    errors: List[str] = []
    audit_record: ErasureAuditRecord
    dry_run: bool = False
    audit_event_id: Optional[str] = None

    def removed_anything(self) -> bool:
        return any(bool(v) for v in self.removed.values())

    def removed_data(self) -> Dict[str, TargetOutcome]:
        """Per-target outcome keyed by plain target name, for serialization."""
        return {name.value: value for name, value in self.removed.items()}
