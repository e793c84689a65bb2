"""Tests for settings and policy configuration."""

from datetime import timedelta

from erasure_kernel.config import ErasureSettings, SecurityPolicy


class TestSecurityPolicy:
    def test_defaults(self):
        policy = SecurityPolicy()
        assert policy.max_attempts == 3
        assert policy.attempt_window == timedelta(hours=1)
        assert policy.cooldown == timedelta(hours=24)
        assert policy.max_per_origin == 5
        assert policy.origin_window == timedelta(hours=24)
        assert policy.new_account_threshold == timedelta(hours=24)
        assert policy.burst_max == 2
        assert policy.burst_window == timedelta(seconds=60)
        assert policy.flag_ttl is None
        assert "headless" in policy.suspicious_agent_patterns


class TestErasureSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ERASURE_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("ERASURE_FLAG_TTL_SECONDS", "3600")
        monkeypatch.setenv("ERASURE_HISTORY_LIMIT", "4")

        settings = ErasureSettings()
        policy = settings.to_policy()
        assert settings.history_limit == 4
        assert policy.max_attempts == 7
        assert policy.flag_ttl == timedelta(hours=1)

    def test_defaults_match_policy(self):
        assert ErasureSettings().to_policy() == SecurityPolicy()
