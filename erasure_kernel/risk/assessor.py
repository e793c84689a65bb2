"""
Risk Assessor — the security gate in front of every account erasure.

Decides whether an erasure request may proceed, using the attempt ledger's
rolling counters, origin reputation and a handful of behavioral
heuristics. Returns a structured SecurityDecision.

Behavioral Contract:
- Rules run in a fixed order. Hard blocks short-circuit; heuristics only
  raise the risk tier and add flags.
- The risk tier only ever escalates within a single check.
- Every check, allowed or denied, is written to the audit ledger as a
  `check` event.
- Never raises. An internal fault produces a denied, high-risk decision.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from erasure_kernel.attempts.ledger import AttemptLedger
from erasure_kernel.audit.ledger import AuditLedger
from erasure_kernel.config import SecurityPolicy
from erasure_kernel.models.audit import AuditEventKind
from erasure_kernel.models.security import RiskTier, SecurityDecision

logger = logging.getLogger(__name__)

REASON_IDENTITY_RATE_LIMIT = "too many attempts for identity"
REASON_ORIGIN_RATE_LIMIT = "too many operations from origin"
REASON_ORIGIN_BLOCKED = "origin is blocked"
REASON_ASSESSMENT_ERROR = "security check could not be completed"


def is_suspicious_user_agent(user_agent: str, patterns: List[str]) -> bool:
    """Case-insensitive substring match against known automation markers."""
    ua = (user_agent or "").lower()
    return any(p.lower() in ua for p in patterns)


def _requires_additional_verification(tier: RiskTier, flags: List[str]) -> bool:
    return tier == RiskTier.HIGH or len(flags) > 2


class RiskAssessor:
    """
    Evaluates erasure requests against the security policy.

    Reads attempt state from the AttemptLedger; writes one audit event per check.
    """

    def __init__(
        self,
        attempts: AttemptLedger,
        audit: AuditLedger,
        policy: Optional[SecurityPolicy] = None,
    ):
        self.attempts = attempts
        self.audit = audit
        self.policy = policy or SecurityPolicy()

    def check(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        account_age: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> SecurityDecision:
        """
        Evaluate one erasure request.

        account_age is how long the account has existed; None skips the
        new-account heuristic.
        """
        if now is None:
            now = datetime.utcnow()

        try:
            decision = self._evaluate(identity, origin, user_agent, account_age, now)
        except Exception as e:
            logger.exception(f"Risk check failed for {identity}; denying")
            decision = SecurityDecision(
                allowed=False,
                risk_tier=RiskTier.HIGH,
                flags=["assessment_error"],
                reason=f"{REASON_ASSESSMENT_ERROR}: {e}",
                additional_verification_required=True,
                evaluated_at=now,
            )

        self._log_check(identity, origin, user_agent, decision)
        return decision

    def _evaluate(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        account_age: Optional[timedelta],
        now: datetime,
    ) -> SecurityDecision:
        policy = self.policy
        flags: List[str] = []
        tier = RiskTier.LOW

        # 1. Per-identity rate limit
        recent = self.attempts.attempts_since(identity, policy.attempt_window, now=now)
        if len(recent) >= policy.max_attempts:
            logger.warning(f"Rate limit exceeded for identity {identity} ({len(recent)} attempts)")
            return self._deny(
                now,
                flags + ["rate_limit_exceeded"],
                REASON_IDENTITY_RATE_LIMIT,
                blocked_until=now + policy.cooldown,
            )

        # 2. Per-origin rate limit
        origin_count = self.attempts.count_for_origin(
            origin, window=policy.origin_window, now=now
        )
        if origin_count >= policy.max_per_origin:
            until = self.attempts.block_origin(origin, now + policy.cooldown)
            logger.warning(f"Rate limit exceeded for origin {origin} ({origin_count} operations)")
            return self._deny(
                now,
                flags + ["origin_rate_limit_exceeded"],
                REASON_ORIGIN_RATE_LIMIT,
                blocked_until=until,
            )

        # 3. Origin reputation
        origin_blocked_until = self.attempts.origin_blocked_until(origin, now=now)
        if origin_blocked_until is not None:
            return self._deny(
                now,
                flags + ["blocked_origin"],
                REASON_ORIGIN_BLOCKED,
                blocked_until=origin_blocked_until,
            )

        # 4. Automation user agents
        if is_suspicious_user_agent(user_agent, policy.suspicious_agent_patterns):
            flags.append("suspicious_user_agent")
            tier = RiskTier.escalate(tier, RiskTier.MEDIUM)

        # 5. Very new accounts
        if account_age is not None and account_age < policy.new_account_threshold:
            flags.append("new_account")
            tier = RiskTier.escalate(tier, RiskTier.MEDIUM)

        # 6. Identities flagged by earlier high-risk failures
        if self.attempts.is_flagged(identity, now=now):
            flags.append("suspicious_identity")
            tier = RiskTier.escalate(tier, RiskTier.HIGH)

        # 7. Bursts
        burst = self.attempts.attempts_since(identity, policy.burst_window, now=now)
        if len(burst) > policy.burst_max:
            flags.append("rapid_requests")
            tier = RiskTier.escalate(tier, RiskTier.HIGH)

        return SecurityDecision(
            allowed=True,
            risk_tier=tier,
            flags=flags,
            reason=f"Security flags: {', '.join(flags)}" if flags else None,
            additional_verification_required=_requires_additional_verification(tier, flags),
            evaluated_at=now,
        )

    def _deny(
        self,
        now: datetime,
        flags: List[str],
        reason: str,
        blocked_until: Optional[datetime] = None,
    ) -> SecurityDecision:
        return SecurityDecision(
            allowed=False,
            risk_tier=RiskTier.HIGH,
            flags=flags,
            reason=reason,
            additional_verification_required=True,
            blocked_until=blocked_until,
            evaluated_at=now,
        )

    def _log_check(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        decision: SecurityDecision,
    ) -> None:
        try:
            self.audit.record(
                kind=AuditEventKind.CHECK,
                identity=identity,
                origin=origin,
                user_agent=user_agent,
                risk_tier=decision.risk_tier,
                flags=decision.flags,
                details={
                    "allowed": decision.allowed,
                    "reason": decision.reason,
                    "additional_verification_required": decision.additional_verification_required,
                    "blocked_until": (
                        decision.blocked_until.isoformat() if decision.blocked_until else None
                    ),
                },
                timestamp=decision.evaluated_at,
            )
        except Exception:
            logger.exception(f"Failed to write audit event for risk check on {identity}")
