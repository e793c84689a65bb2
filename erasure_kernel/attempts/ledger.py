"""
Attempt Ledger — rolling record of erasure attempts.

Updated by: the erasure workflow, once per attempt (allowed or blocked)
Queried by: the Risk Assessor

Behavioral Contract:
- Attempts are appended per identity, newest last, and never deleted
  except by a full administrative clear.
- Each attempt bumps its origin's counter; counts are read inside a
  sliding window.
- A failed high-risk attempt flags its identity. Flags are sticky unless
  the ledger is given a flag_ttl.
- Origin blocks carry an expiry and lapse on their own once it passes.
- All mutation goes through one lock, so concurrent callers never lose or
  double a count.
"""

import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional

from erasure_kernel.models.security import AttemptOutcome, AttemptRecord, RiskTier

logger = logging.getLogger(__name__)


class AttemptLedger:
    """
    In-memory attempt ledger.
    A persistent store only needs to provide the same public methods.
    """

    def __init__(
        self,
        origin_window: timedelta = timedelta(hours=24),
        flag_ttl: Optional[timedelta] = None,
    ):
        self.origin_window = origin_window
        self.flag_ttl = flag_ttl
        self._attempts: Dict[str, List[AttemptRecord]] = {}
        self._origin_hits: Dict[str, Deque[datetime]] = {}
        self._flagged: Dict[str, datetime] = {}
        self._blocked_origins: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def record_attempt(
        self,
        identity: str,
        origin: str,
        user_agent: str,
        outcome: AttemptOutcome,
        risk_tier: RiskTier,
        flags: Optional[List[str]] = None,
        reason: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AttemptRecord:
        """Append an attempt to the identity's history and count it against its origin."""
        record = AttemptRecord(
            identity=identity,
            timestamp=timestamp or datetime.utcnow(),
            origin=origin,
            user_agent=user_agent,
            outcome=outcome,
            risk_tier=risk_tier,
            flags=list(flags or []),
            reason=reason,
        )

        with self._lock:
            self._attempts.setdefault(identity, []).append(record)
            hits = self._origin_hits.setdefault(origin, deque())
            hits.append(record.timestamp)
            # Hits older than the window can never count again
            cutoff = record.timestamp - self.origin_window
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if risk_tier == RiskTier.HIGH and outcome == AttemptOutcome.FAILURE:
                self._flagged[identity] = record.timestamp
                logger.warning(f"Identity flagged after high-risk failed attempt: {identity}")

        return record

    def history(self, identity: str) -> List[AttemptRecord]:
        """Full attempt history for an identity, oldest first."""
        with self._lock:
            return list(self._attempts.get(identity, []))

    def attempts_since(
        self,
        identity: str,
        window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[AttemptRecord]:
        """Attempts for an identity that fall inside the trailing window."""
        now = now or datetime.utcnow()
        cutoff = now - window
        return [a for a in self.history(identity) if a.timestamp > cutoff]

    def count_for_origin(
        self,
        origin: str,
        window: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Rolling attempt count for an origin within the window."""
        now = now or datetime.utcnow()
        cutoff = now - (window or self.origin_window)
        with self._lock:
            hits = self._origin_hits.get(origin)
            if not hits:
                return 0
            return sum(1 for ts in hits if ts > cutoff)

    def block_origin(self, origin: str, until: datetime) -> datetime:
        """Block an origin until the given instant. Never shortens an existing block."""
        with self._lock:
            current = self._blocked_origins.get(origin)
            if current is None or until > current:
                self._blocked_origins[origin] = until
                logger.warning(f"Origin blocked until {until.isoformat()}: {origin}")
                return until
            return current

    def origin_blocked_until(
        self, origin: str, now: Optional[datetime] = None
    ) -> Optional[datetime]:
        """Expiry of the origin's block, or None if it is not blocked at `now`."""
        now = now or datetime.utcnow()
        with self._lock:
            until = self._blocked_origins.get(origin)
            if until is None:
                return None
            if until <= now:
                del self._blocked_origins[origin]
                return None
            return until

    def is_origin_blocked(self, origin: str, now: Optional[datetime] = None) -> bool:
        return self.origin_blocked_until(origin, now=now) is not None

    def is_flagged(self, identity: str, now: Optional[datetime] = None) -> bool:
        """Whether the identity carries a suspicion flag that has not expired."""
        with self._lock:
            flagged_at = self._flagged.get(identity)
        if flagged_at is None:
            return False
        if self.flag_ttl is None:
            return True
        now = now or datetime.utcnow()
        return now - flagged_at < self.flag_ttl

    def clear(self) -> None:
        """Administrative reset. Not part of per-user erasure."""
        with self._lock:
            self._attempts.clear()
            self._origin_hits.clear()
            self._flagged.clear()
            self._blocked_origins.clear()
        logger.info("Attempt ledger cleared")
