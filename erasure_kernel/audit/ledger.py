"""
Audit Ledger — append-only, hash-chained record of security events.

Every risk check, erasure attempt and notification produces one AuditEvent.

Behavioral Contract:
- Append-only. No event is ever modified or deleted individually.
- The only bulk mutation is clear(), reserved for ops and test tooling.
  It is never called on the per-user erasure path.
- Each row is hashed and chained to the previous row (tamper-evident).
- IDs sort in creation order; rows are read back in insertion order.
"""

import hashlib
import json
import logging
import os
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from erasure_kernel.models.audit import AuditEvent, AuditEventKind
from erasure_kernel.models.security import RiskTier

logger = logging.getLogger(__name__)


ID_PREFIX = "audit_"
_TIME_HEX = 16
_SEQ_HEX = 12


def _format_id(micros: int, seq: int) -> str:
    return f"{ID_PREFIX}{micros:0{_TIME_HEX}x}{seq:0{_SEQ_HEX}x}"


def _parse_id(event_id: str) -> Optional[tuple]:
    body = event_id[len(ID_PREFIX):]
    if not event_id.startswith(ID_PREFIX) or len(body) != _TIME_HEX + _SEQ_HEX:
        return None
    try:
        return int(body[:_TIME_HEX], 16), int(body[_TIME_HEX:], 16)
    except ValueError:
        return None


def generate_event_id(
    timestamp: Optional[datetime] = None,
    previous: Optional[str] = None,
) -> str:
    """
    Event id that sorts after `previous`.

    Ids are a microsecond timestamp followed by a sequence. A fresh
    timestamp gets a random sequence with headroom below the maximum; a
    timestamp at or before the previous id's reuses that timestamp and
    increments the sequence, so lexical order always follows issue order.
    """
    ts = timestamp or datetime.utcnow()
    micros = int(ts.timestamp() * 1_000_000)
    last = _parse_id(previous) if previous else None
    if last is not None and micros <= last[0]:
        return _format_id(last[0], last[1] + 1)
    # 40 random bits in a 48-bit field
    return _format_id(micros, int.from_bytes(os.urandom(5), "big"))


def _sign(payload: dict, prior_hash: Optional[str]) -> str:
    body = json.dumps(
        {"event": payload, "prior": prior_hash or ""},
        sort_keys=True,
        default=str,
    ).encode()
    return hashlib.sha256(body).hexdigest()


class AuditLedger:
    """
    Append-only audit ledger.
    Prototype: SQLite. Production: any store with insertion ordering.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._last_id: Optional[str] = None
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the audit table if it doesn't exist."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_events (
                    id TEXT PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    identity TEXT NOT NULL,
                    origin TEXT NOT NULL,
                    risk_tier TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    prior_hash TEXT,
                    event_json TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_identity ON audit_events(identity)
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_kind ON audit_events(kind)
            """)
            self._conn.commit()
            self._last_id = self._latest_generated_id()

    def append(self, event: AuditEvent) -> str:
        """Append an event, chaining its signature to the previous row. Returns the id."""
        with self._lock:
            self._insert(event)
            if _parse_id(event.id) and (self._last_id is None or event.id > self._last_id):
                self._last_id = event.id

        logger.debug(f"Audit event {event.kind.value} recorded for {event.identity}: {event.id}")
        return event.id

    def _insert(self, event: AuditEvent) -> None:
        # Caller holds self._lock
        payload = event.model_dump(mode="json")
        prior_hash = self._latest_signature()
        signature = _sign(payload, prior_hash)
        self._conn.execute(
            """
            INSERT INTO audit_events (
                id, timestamp, kind, identity, origin, risk_tier,
                signature, prior_hash, event_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.timestamp.isoformat(),
                event.kind.value,
                event.identity,
                event.origin,
                event.risk_tier.value,
                signature,
                prior_hash,
                json.dumps(payload, default=str),
            ),
        )
        self._conn.commit()

    def record(
        self,
        kind: AuditEventKind,
        identity: str,
        origin: str,
        user_agent: str,
        risk_tier: RiskTier = RiskTier.LOW,
        flags: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Build an event with a fresh id and append it. Ids sort in append order."""
        ts = timestamp or datetime.utcnow()
        with self._lock:
            event = AuditEvent(
                id=generate_event_id(ts, previous=self._last_id),
                timestamp=ts,
                kind=kind,
                identity=identity,
                origin=origin,
                user_agent=user_agent,
                risk_tier=risk_tier,
                flags=list(flags or []),
                details=details or {},
            )
            self._insert(event)
            self._last_id = event.id

        logger.debug(f"Audit event {event.kind.value} recorded for {event.identity}: {event.id}")
        return event.id

    def _latest_generated_id(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT MAX(id) AS last_id FROM audit_events WHERE id LIKE ?",
            (f"{ID_PREFIX}%",),
        ).fetchone()
        return row["last_id"] if row else None

    def _latest_signature(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM audit_events ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _deserialize(self, row: sqlite3.Row) -> AuditEvent:
        return AuditEvent.model_validate_json(row["event_json"])

    def get(self, event_id: str) -> Optional[AuditEvent]:
        with self._lock:
            row = self._conn.execute(
                "SELECT event_json FROM audit_events WHERE id = ?", (event_id,)
            ).fetchone()
        return self._deserialize(row) if row else None

    def by_identity(self, identity: str) -> List[AuditEvent]:
        """Every event for an identity, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT event_json FROM audit_events WHERE identity = ? ORDER BY rowid",
                (identity,),
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def all(self) -> List[AuditEvent]:
        """Every event in the ledger (administrative)."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT event_json FROM audit_events ORDER BY rowid"
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM audit_events").fetchone()
        return row["cnt"]

    def verify_integrity(self) -> bool:
        """Recompute the signature chain. False means a row was altered or removed."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT event_json, signature, prior_hash FROM audit_events ORDER BY rowid"
            ).fetchall()

        prior: Optional[str] = None
        for row in rows:
            if row["prior_hash"] != prior:
                return False
            payload = json.loads(row["event_json"])
            if _sign(payload, prior) != row["signature"]:
                return False
            prior = row["signature"]
        return True

    def clear(self) -> None:
        """Administrative reset of the whole ledger (ops and test tooling only)."""
        with self._lock:
            self._conn.execute("DELETE FROM audit_events")
            self._conn.commit()
        logger.warning("Audit ledger cleared by administrative reset")

    def close(self) -> None:
        self._conn.close()
