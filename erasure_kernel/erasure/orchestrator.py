"""
Erasure Orchestrator — sweeps a user's data across every registered store.

Behavioral Contract:
- Targets are erased in the registry's fixed order.
- Each target runs inside its own failure boundary. A failing target is
  reported in `errors` and the sweep carries on. Nothing is rolled back.
- Re-running an erasure is safe: targets already cleared report their
  empty state, and the run still succeeds.
- Dry runs only call preview() and leave every store, the history and
  the audit ledger untouched.
- Never raises. A fault outside the per-target boundary is caught once
  and returned as a critical error on a failed result.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Optional

from erasure_kernel.audit.ledger import AuditLedger
from erasure_kernel.erasure.targets import DataStoreRegistry
from erasure_kernel.locking import KeyedLocks
from erasure_kernel.models.audit import AuditEventKind
from erasure_kernel.models.erasure import (
    ErasureAuditRecord,
    ErasureOptions,
    ErasureResult,
    ErasureTargetName,
    empty_outcome,
)
from erasure_kernel.models.security import RiskTier

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


def _label(name: ErasureTargetName) -> str:
    return name.value.replace("_", " ")


def _skipped(name: ErasureTargetName, options: ErasureOptions) -> bool:
    return options.skip_backups and name == ErasureTargetName.BACKUPS


class ErasureOrchestrator:
    """
    Drives the DataStoreRegistry end-to-end for one identity at a time.
    Keeps a short per-identity history of results for operational debugging.
    """

    def __init__(
        self,
        registry: DataStoreRegistry,
        audit: AuditLedger,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        locks: Optional[KeyedLocks] = None,
    ):
        self.registry = registry
        self.audit = audit
        self.history_limit = history_limit
        self._locks = locks or KeyedLocks()
        self._history: Dict[str, Deque[ErasureResult]] = {}

    def erase_all(
        self,
        identity: str,
        initiator: str,
        origin: Optional[str] = None,
        user_agent: Optional[str] = None,
        options: Optional[ErasureOptions] = None,
    ) -> ErasureResult:
        """Erase (or, on a dry run, preview) everything held for an identity."""
        options = options or ErasureOptions()
        result = ErasureResult(
            audit_record=ErasureAuditRecord(
                identity=identity,
                timestamp=datetime.utcnow(),
                initiator=initiator,
                origin=origin,
                user_agent=user_agent,
            ),
            dry_run=options.dry_run,
        )

        if options.dry_run:
            logger.info(f"[DRY RUN] Data removal simulation for user: {identity}")
            try:
                return self._simulate(identity, options, result)
            except Exception as e:
                result.errors.append(f"Critical error during data removal: {e}")
                result.success = False
                logger.exception(f"Dry run failed for {identity}")
                return result

        with self._locks.hold(identity):
            try:
                self._sweep(identity, options, result)
                result.success = not result.errors
            except Exception as e:
                result.errors.append(f"Critical error during data removal: {e}")
                result.success = False
                logger.exception(f"Data removal failed for {identity}")

            result.audit_event_id = self._record(result)
            self._remember(identity, result)

        logger.info(
            f"Data removal completed for user: {identity} "
            f"(success={result.success}, errors={len(result.errors)})"
        )
        return result

    def _sweep(self, identity: str, options: ErasureOptions, result: ErasureResult) -> None:
        for name, target in self.registry:
            if _skipped(name, options):
                continue
            try:
                outcome = target.erase(identity)
                result.removed[name] = outcome
                if outcome:
                    logger.debug(f"Removed {_label(name)} for {identity}: {outcome}")
            except Exception as e:
                result.removed[name] = empty_outcome(name)
                result.errors.append(f"Failed to remove {_label(name)}: {e}")
                logger.error(f"Failed to remove {_label(name)} for {identity}: {e}")

    def _simulate(self, identity: str, options: ErasureOptions, result: ErasureResult) -> ErasureResult:
        for name, target in self.registry:
            if _skipped(name, options):
                continue
            try:
                result.removed[name] = target.preview(identity)
            except Exception as e:
                result.errors.append(f"Failed to preview {_label(name)}: {e}")
        result.success = not result.errors
        return result

    def _record(self, result: ErasureResult) -> Optional[str]:
        record = result.audit_record
        kind = AuditEventKind.ATTEMPT_SUCCESS if result.success else AuditEventKind.ATTEMPT_FAILURE
        try:
            return self.audit.record(
                kind=kind,
                identity=record.identity,
                origin=record.origin or "unknown",
                user_agent=record.user_agent or "unknown",
                risk_tier=RiskTier.LOW,
                flags=["successful_deletion"] if result.success else ["failed_deletion"],
                details={
                    "initiator": record.initiator,
                    "started_at": record.timestamp.isoformat(),
                    "removed": result.removed_data(),
                    "errors": list(result.errors),
                },
            )
        except Exception:
            logger.exception(f"Failed to write erasure audit event for {record.identity}")
            return None

    def _remember(self, identity: str, result: ErasureResult) -> None:
        history = self._history.get(identity)
        if history is None:
            history = deque(maxlen=self.history_limit)
            self._history[identity] = history
        history.append(result.model_copy(deep=True))

    def removal_history(self, identity: str) -> List[ErasureResult]:
        """Recent real (non-dry) runs for an identity, oldest first."""
        with self._locks.hold(identity):
            return list(self._history.get(identity, ()))

    def clear_history(self) -> None:
        """Drop all removal history (ops and test tooling)."""
        self._history.clear()
