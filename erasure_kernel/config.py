"""
Configuration for the erasure kernel.

SecurityPolicy holds the gate's thresholds as plain values so services and
tests can build isolated instances. ErasureSettings reads the deployment
environment (ERASURE_* variables or a .env file) and produces a policy.
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUSPICIOUS_AGENT_PATTERNS: Tuple[str, ...] = (
    "bot",
    "crawler",
    "spider",
    "scraper",
    "automation",
    "headless",
    "phantom",
    "selenium",
    "webdriver",
    "puppeteer",
)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class SecurityPolicy(BaseModel):
    """Thresholds evaluated by the RiskAssessor and AttemptLedger."""

    max_attempts: int = 3
    attempt_window: timedelta = timedelta(hours=1)
    cooldown: timedelta = timedelta(hours=24)

    max_per_origin: int = 5
    origin_window: timedelta = timedelta(hours=24)

    new_account_threshold: timedelta = timedelta(hours=24)

    burst_max: int = 2                      # More than this many in burst_window is a burst
    burst_window: timedelta = timedelta(seconds=60)

    # None keeps a flagged identity flagged until an administrative clear.
    flag_ttl: Optional[timedelta] = None

    suspicious_agent_patterns: List[str] = list(DEFAULT_SUSPICIOUS_AGENT_PATTERNS)


class ErasureSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ERASURE_",
        env_file=".env",
        extra="ignore",
    )

    audit_db_path: str = ":memory:"
    history_limit: int = 10
    log_level: str = "INFO"

    max_attempts: int = 3
    attempt_window_seconds: int = 60 * 60
    cooldown_seconds: int = 24 * 60 * 60
    max_per_origin: int = 5
    origin_window_seconds: int = 24 * 60 * 60
    new_account_threshold_seconds: int = 24 * 60 * 60
    burst_max: int = 2
    burst_window_seconds: int = 60
    flag_ttl_seconds: Optional[int] = None

    def to_policy(self) -> SecurityPolicy:
        return SecurityPolicy(
            max_attempts=self.max_attempts,
            attempt_window=timedelta(seconds=self.attempt_window_seconds),
            cooldown=timedelta(seconds=self.cooldown_seconds),
            max_per_origin=self.max_per_origin,
            origin_window=timedelta(seconds=self.origin_window_seconds),
            new_account_threshold=timedelta(seconds=self.new_account_threshold_seconds),
            burst_max=self.burst_max,
            burst_window=timedelta(seconds=self.burst_window_seconds),
            flag_ttl=(
                timedelta(seconds=self.flag_ttl_seconds)
                if self.flag_ttl_seconds is not None
                else None
            ),
        )


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging once for the API process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
