"""Tests for the Risk Assessor."""

from datetime import datetime, timedelta

from erasure_kernel.attempts.ledger import AttemptLedger
from erasure_kernel.audit.ledger import AuditLedger
from erasure_kernel.config import SecurityPolicy
from erasure_kernel.models.audit import AuditEventKind
from erasure_kernel.models.security import AttemptOutcome, RiskTier
from erasure_kernel.risk.assessor import (
    REASON_IDENTITY_RATE_LIMIT,
    REASON_ORIGIN_BLOCKED,
    REASON_ORIGIN_RATE_LIMIT,
    RiskAssessor,
    is_suspicious_user_agent,
)

BROWSER = "Mozilla/5.0 (X11; Linux x86_64) Firefox/131.0"
NOW = datetime(2026, 10, 19, 12, 0, 0)


class TestRiskAssessor:
    def setup_method(self):
        self.attempts = AttemptLedger()
        self.audit = AuditLedger(db_path=":memory:")
        self.assessor = RiskAssessor(self.attempts, self.audit)

    def _attempt(self, identity, origin="o1", outcome=AttemptOutcome.FAILURE,
                 tier=RiskTier.LOW, at=NOW):
        self.attempts.record_attempt(
            identity, origin, BROWSER, outcome=outcome, risk_tier=tier, timestamp=at
        )

    def test_normal_request_is_low_risk(self):
        decision = self.assessor.check("u1", "o1", BROWSER, account_age=timedelta(days=30), now=NOW)
        assert decision.allowed is True
        assert decision.risk_tier == RiskTier.LOW
        assert decision.flags == []
        assert decision.additional_verification_required is False
        assert decision.blocked_until is None

    def test_identity_rate_limit_boundary(self):
        for minutes in (30, 20, 10):
            self._attempt("u1", at=NOW - timedelta(minutes=minutes))

        decision = self.assessor.check("u1", "o1", BROWSER, now=NOW)
        assert decision.allowed is False
        assert decision.risk_tier == RiskTier.HIGH
        assert decision.reason == REASON_IDENTITY_RATE_LIMIT
        assert decision.blocked_until == NOW + timedelta(hours=24)
        assert "rate_limit_exceeded" in decision.flags

    def test_two_attempts_are_still_allowed(self):
        for minutes in (30, 10):
            self._attempt("u1", at=NOW - timedelta(minutes=minutes))
        assert self.assessor.check("u1", "o1", BROWSER, now=NOW).allowed is True

    def test_old_attempts_fall_out_of_window(self):
        for hours in (5, 4, 3):
            self._attempt("u1", at=NOW - timedelta(hours=hours))
        assert self.assessor.check("u1", "o1", BROWSER, now=NOW).allowed is True

    def test_origin_flood_blocks_new_identity(self):
        for i in range(5):
            self._attempt(f"user{i}", outcome=AttemptOutcome.SUCCESS, at=NOW - timedelta(hours=1))

        decision = self.assessor.check("newcomer", "o1", BROWSER, now=NOW)
        assert decision.allowed is False
        assert decision.risk_tier == RiskTier.HIGH
        assert "origin" in decision.reason
        assert decision.reason == REASON_ORIGIN_RATE_LIMIT
        assert decision.blocked_until == NOW + timedelta(hours=24)
        assert self.attempts.is_origin_blocked("o1", now=NOW)

    def test_blocked_origin_reports_its_expiry(self):
        until = NOW + timedelta(hours=6)
        self.attempts.block_origin("o9", until)
        decision = self.assessor.check("u1", "o9", BROWSER, now=NOW)
        assert decision.allowed is False
        assert decision.risk_tier == RiskTier.HIGH
        assert decision.flags == ["blocked_origin"]
        assert decision.reason == REASON_ORIGIN_BLOCKED
        assert decision.blocked_until == until

    def test_origin_recovers_after_block_expires(self):
        for i in range(5):
            self._attempt(f"user{i}", outcome=AttemptOutcome.SUCCESS, at=NOW - timedelta(hours=1))
        denied = self.assessor.check("newcomer", "o1", BROWSER, now=NOW)
        assert denied.allowed is False

        later = denied.blocked_until + timedelta(days=30)
        decision = self.assessor.check("newcomer", "o1", BROWSER, now=later)
        assert decision.allowed is True
        assert decision.blocked_until is None

    def test_retry_at_block_until_is_allowed(self):
        self.attempts.block_origin("o9", NOW + timedelta(hours=1))
        decision = self.assessor.check("u1", "o9", BROWSER, now=NOW + timedelta(hours=1))
        assert decision.allowed is True

    def test_suspicious_user_agent_elevates_to_medium(self):
        decision = self.assessor.check("u1", "o1", "HeadlessChrome/Bot", now=NOW)
        assert decision.allowed is True
        assert decision.risk_tier == RiskTier.MEDIUM
        assert "suspicious_user_agent" in decision.flags

    def test_new_account_elevates_to_medium(self):
        decision = self.assessor.check("u1", "o1", BROWSER, account_age=timedelta(hours=12), now=NOW)
        assert decision.risk_tier == RiskTier.MEDIUM
        assert "new_account" in decision.flags

    def test_established_account_stays_low(self):
        decision = self.assessor.check("u1", "o1", BROWSER, account_age=timedelta(days=30), now=NOW)
        assert decision.risk_tier == RiskTier.LOW
        assert "new_account" not in decision.flags

    def test_unknown_account_age_skips_heuristic(self):
        decision = self.assessor.check("u1", "o1", BROWSER, account_age=None, now=NOW)
        assert "new_account" not in decision.flags

    def test_flagged_identity_forces_high(self):
        self._attempt("u1", tier=RiskTier.HIGH, at=NOW - timedelta(hours=3))
        decision = self.assessor.check("u1", "o1", BROWSER, now=NOW)
        assert decision.allowed is True
        assert decision.risk_tier == RiskTier.HIGH
        assert "suspicious_identity" in decision.flags
        assert decision.additional_verification_required is True

    def test_burst_detection(self):
        assessor = RiskAssessor(
            self.attempts, self.audit, SecurityPolicy(max_attempts=10, max_per_origin=50)
        )
        for seconds in (40, 30, 20):
            self._attempt("u1", outcome=AttemptOutcome.SUCCESS, at=NOW - timedelta(seconds=seconds))

        decision = assessor.check("u1", "o1", BROWSER, now=NOW)
        assert decision.allowed is True
        assert decision.risk_tier == RiskTier.HIGH
        assert "rapid_requests" in decision.flags

    def test_tier_never_de_escalates(self):
        self._attempt("u1", tier=RiskTier.HIGH, at=NOW - timedelta(hours=3))
        decision = self.assessor.check(
            "u1", "o1", "selenium-webdriver", account_age=timedelta(hours=1), now=NOW
        )
        assert decision.risk_tier == RiskTier.HIGH
        assert decision.flags == ["suspicious_user_agent", "new_account", "suspicious_identity"]

    def test_many_flags_require_verification(self):
        assessor = RiskAssessor(
            self.attempts, self.audit, SecurityPolicy(max_attempts=10, max_per_origin=50)
        )
        decision = assessor.check("u1", "o1", "python-bot", account_age=timedelta(hours=1), now=NOW)
        assert decision.risk_tier == RiskTier.MEDIUM
        assert len(decision.flags) == 2
        assert decision.additional_verification_required is False

    def test_every_check_is_audited(self):
        self.assessor.check("u1", "o1", "HeadlessChrome/Bot", now=NOW)
        self.attempts.block_origin("o2", NOW + timedelta(hours=1))
        self.assessor.check("u1", "o2", BROWSER, now=NOW)

        events = self.audit.by_identity("u1")
        assert len(events) == 2
        assert all(e.kind == AuditEventKind.CHECK for e in events)
        assert events[0].details["allowed"] is True
        assert events[0].flags == ["suspicious_user_agent"]
        assert events[1].details["allowed"] is False
        assert events[1].risk_tier == RiskTier.HIGH

    def test_internal_fault_denies_without_raising(self):
        class BrokenLedger(AttemptLedger):
            def attempts_since(self, *args, **kwargs):
                raise RuntimeError("ledger unavailable")

        assessor = RiskAssessor(BrokenLedger(), self.audit)
        decision = assessor.check("u1", "o1", BROWSER, now=NOW)
        assert decision.allowed is False
        assert decision.risk_tier == RiskTier.HIGH
        assert "assessment_error" in decision.flags
        assert len(self.audit.by_identity("u1")) == 1

    def test_audit_failure_does_not_change_decision(self):
        self.audit.close()
        decision = self.assessor.check("u1", "o1", BROWSER, now=NOW)
        assert decision.allowed is True


class TestSuspiciousUserAgent:
    def test_case_insensitive(self):
        patterns = SecurityPolicy().suspicious_agent_patterns
        assert is_suspicious_user_agent("Mozilla/5.0 HeadlessChrome/120", patterns)
        assert is_suspicious_user_agent("PUPPETEER", patterns)
        assert not is_suspicious_user_agent(BROWSER, patterns)
        assert not is_suspicious_user_agent("", patterns)
