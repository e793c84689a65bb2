"""
Account Erasure Service — the full request workflow around the kernel.

Wires the security gate to the erasure orchestrator:

    check → record attempt → erase (if allowed) → notify

Upstream handlers verify credentials and resolve the request's identity,
origin and user agent; this service owns everything after that.

Behavioral Contract:
- One lock per identity spans the whole workflow. Concurrent requests for
  the same identity are serialized: each is recorded as an attempt, and
  the stores end in exactly one state.
- Blocked requests are recorded as failed attempts and trigger a
  `deletion_blocked` notification.
- Notifications run after the erasure result is final and never change it.
- Dry runs check the gate but record no attempt and send no notification.
"""

import logging
from datetime import datetime
from typing import List, Optional

from erasure_kernel.attempts.ledger import AttemptLedger
from erasure_kernel.audit.ledger import AuditLedger
from erasure_kernel.config import ErasureSettings, SecurityPolicy
from erasure_kernel.erasure.orchestrator import DEFAULT_HISTORY_LIMIT, ErasureOrchestrator
from erasure_kernel.erasure.targets import DataStoreRegistry, build_in_memory_registry
from erasure_kernel.locking import KeyedLocks
from erasure_kernel.models.audit import AuditEvent, AuditEventKind
from erasure_kernel.models.erasure import ErasureOptions, ErasureResult
from erasure_kernel.models.notification import NotificationKind, NotificationReport
from erasure_kernel.models.outcome import ErasureOutcome, ErasureStatus
from erasure_kernel.models.security import AttemptOutcome, SecurityDecision
from erasure_kernel.notifications.dispatcher import NotificationDispatcher
from erasure_kernel.risk.assessor import RiskAssessor

logger = logging.getLogger(__name__)

SELF_SERVICE_INITIATOR = "user_self_deletion"


class AccountErasureService:
    """
    Explicitly constructed service holding every collaborator.
    Build one per process (or per test) and pass it to callers.
    """

    def __init__(
        self,
        registry: Optional[DataStoreRegistry] = None,
        audit: Optional[AuditLedger] = None,
        attempts: Optional[AttemptLedger] = None,
        policy: Optional[SecurityPolicy] = None,
        notifier: Optional[NotificationDispatcher] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.policy = policy or SecurityPolicy()
        self.audit = audit or AuditLedger()
        self.attempts = attempts or AttemptLedger(
            origin_window=self.policy.origin_window,
            flag_ttl=self.policy.flag_ttl,
        )
        self.registry = registry or build_in_memory_registry()
        self.locks = KeyedLocks()

        self.assessor = RiskAssessor(self.attempts, self.audit, self.policy)
        self.orchestrator = ErasureOrchestrator(
            self.registry,
            self.audit,
            history_limit=history_limit,
            locks=self.locks,
        )
        self.notifier = notifier or NotificationDispatcher(self.audit)

    @classmethod
    def from_settings(
        cls,
        settings: ErasureSettings,
        registry: Optional[DataStoreRegistry] = None,
    ) -> "AccountErasureService":
        return cls(
            registry=registry,
            audit=AuditLedger(db_path=settings.audit_db_path),
            policy=settings.to_policy(),
            history_limit=settings.history_limit,
        )

    def request_erasure(
        self,
        identity: str,
        credentials_verified: bool,
        origin: str,
        user_agent: str,
        account_created_at: Optional[datetime] = None,
        options: Optional[ErasureOptions] = None,
        initiator: str = SELF_SERVICE_INITIATOR,
        now: Optional[datetime] = None,
    ) -> ErasureOutcome:
        """Run the gated erasure workflow for one request."""
        options = options or ErasureOptions()

        if not credentials_verified:
            logger.warning(f"Erasure refused for {identity}: credentials not verified")
            return ErasureOutcome(identity=identity, status=ErasureStatus.UNAUTHORIZED)

        if now is None:
            now = datetime.utcnow()
        account_age = now - account_created_at if account_created_at else None

        with self.locks.hold(identity):
            decision = self.assessor.check(
                identity, origin, user_agent, account_age=account_age, now=now
            )

            if options.dry_run:
                return self._preview(identity, origin, user_agent, decision, options, initiator)

            if not decision.allowed:
                return self._block(identity, origin, user_agent, decision, now)

            result = self.orchestrator.erase_all(
                identity,
                initiator=initiator,
                origin=origin,
                user_agent=user_agent,
                options=options,
            )
            self.attempts.record_attempt(
                identity,
                origin,
                user_agent,
                outcome=AttemptOutcome.SUCCESS if result.success else AttemptOutcome.FAILURE,
                risk_tier=decision.risk_tier,
                flags=["successful_deletion"] if result.success else ["failed_deletion"],
                reason="deletion_completed" if result.success else "deletion_failed",
                timestamp=now,
            )

        # The result is final here; notification cannot change it.
        if result.success:
            report = self.notifier.notify(
                identity,
                NotificationKind.DELETION_SUCCESS,
                {
                    "timestamp": result.audit_record.timestamp.isoformat(),
                    "risk_level": decision.risk_tier.value,
                    "removed_data": result.removed_data(),
                    "ip": origin,
                    "user_agent": user_agent,
                },
            )
            status = ErasureStatus.COMPLETED
        else:
            logger.error(f"Data removal failed for {identity}: {result.errors}")
            report = self.notifier.notify(
                identity,
                NotificationKind.DELETION_FAILED,
                {"errors": list(result.errors), "ip": origin, "user_agent": user_agent},
            )
            status = ErasureStatus.FAILED

        return ErasureOutcome(
            identity=identity,
            status=status,
            decision=decision,
            result=result,
            notification=report,
        )

    def _preview(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        decision: SecurityDecision,
        options: ErasureOptions,
        initiator: str,
    ) -> ErasureOutcome:
        if not decision.allowed:
            return ErasureOutcome(identity=identity, status=ErasureStatus.BLOCKED, decision=decision)
        result = self.orchestrator.erase_all(
            identity,
            initiator=initiator,
            origin=origin,
            user_agent=user_agent,
            options=options,
        )
        return ErasureOutcome(
            identity=identity,
            status=ErasureStatus.PREVIEW,
            decision=decision,
            result=result,
        )

    def _block(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        decision: SecurityDecision,
        now: datetime,
    ) -> ErasureOutcome:
        self.attempts.record_attempt(
            identity,
            origin,
            user_agent,
            outcome=AttemptOutcome.FAILURE,
            risk_tier=decision.risk_tier,
            flags=decision.flags,
            reason=decision.reason,
            timestamp=now,
        )
        try:
            self.audit.record(
                kind=AuditEventKind.ATTEMPT_FAILURE,
                identity=identity,
                origin=origin,
                user_agent=user_agent,
                risk_tier=decision.risk_tier,
                flags=decision.flags,
                details={"blocked": True, "reason": decision.reason},
                timestamp=now,
            )
        except Exception:
            logger.exception(f"Failed to write blocked-attempt audit event for {identity}")

        report = self.notifier.notify(
            identity,
            NotificationKind.DELETION_BLOCKED,
            {
                "reason": decision.reason,
                "risk_level": decision.risk_tier.value,
                "ip": origin,
                "user_agent": user_agent,
                "block_until": (
                    decision.blocked_until.isoformat() if decision.blocked_until else None
                ),
            },
        )
        return ErasureOutcome(
            identity=identity,
            status=ErasureStatus.BLOCKED,
            decision=decision,
            notification=report,
        )

    # --- Administrative reads ---

    def audit_by_identity(self, identity: str) -> List[AuditEvent]:
        return self.audit.by_identity(identity)

    def audit_all(self) -> List[AuditEvent]:
        return self.audit.all()

    def removal_history(self, identity: str) -> List[ErasureResult]:
        return self.orchestrator.removal_history(identity)

    def reset(self) -> None:
        """Administrative reset of every ledger and history (ops and test tooling)."""
        self.attempts.clear()
        self.audit.clear()
        self.orchestrator.clear_history()
        logger.warning("Erasure service state reset")
