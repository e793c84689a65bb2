"""
Erasure targets and the data store registry.

Each target wraps one store holding user data and exposes the minimal
erase contract: present / preview / erase. The registry fixes the twelve
targets and the order they are swept in.

In-memory stores back the default registry; any target can be swapped
for one backed by a database, object store or cache client as long as it
honours ErasureTarget.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from erasure_kernel.errors import RegistryError
from erasure_kernel.models.erasure import (
    ERASURE_ORDER,
    ErasureTargetName,
    TargetOutcome,
)

logger = logging.getLogger(__name__)


class ErasureTarget(Protocol):
    """Protocol for an erasable store — pluggable backend."""

    name: ErasureTargetName

    def present(self, identity: str) -> bool: ...

    def preview(self, identity: str) -> TargetOutcome: ...

    def erase(self, identity: str) -> TargetOutcome: ...


class InMemoryKeyedTarget:
    """A singleton-per-identity store (profile, pending verification, ...)."""

    def __init__(self, name: ErasureTargetName, records: Optional[Dict[str, Any]] = None):
        self.name = name
        self.records: Dict[str, Any] = records if records is not None else {}
        self._lock = threading.Lock()

    def put(self, identity: str, value: Any = True) -> None:
        with self._lock:
            self.records[identity] = value

    def present(self, identity: str) -> bool:
        with self._lock:
            return identity in self.records

    def preview(self, identity: str) -> bool:
        return self.present(identity)

    def erase(self, identity: str) -> bool:
        with self._lock:
            if identity not in self.records:
                return False
            del self.records[identity]
            return True


class InMemorySessionTarget:
    """Session tokens. One identity may hold many concurrent sessions."""

    def __init__(self, sessions: Optional[Dict[str, str]] = None):
        self.name = ErasureTargetName.SESSIONS
        self.sessions: Dict[str, str] = sessions if sessions is not None else {}
        self._lock = threading.Lock()

    def add_session(self, token: str, identity: str) -> None:
        with self._lock:
            self.sessions[token] = identity

    def tokens_for(self, identity: str) -> List[str]:
        with self._lock:
            return [t for t, owner in self.sessions.items() if owner == identity]

    def present(self, identity: str) -> bool:
        return bool(self.tokens_for(identity))

    def preview(self, identity: str) -> int:
        return len(self.tokens_for(identity))

    def erase(self, identity: str) -> int:
        with self._lock:
            matched = [t for t, owner in self.sessions.items() if owner == identity]
            for token in matched:
                del self.sessions[token]
        return len(matched)


class InMemoryCompositeTarget:
    """Several keyed maps erased as one target (e.g. resend + reset rate counters)."""

    def __init__(self, name: ErasureTargetName, stores: Dict[str, Dict[str, Any]]):
        self.name = name
        self.stores = stores
        self._lock = threading.Lock()

    def put(self, store: str, identity: str, value: Any = True) -> None:
        with self._lock:
            self.stores[store][identity] = value

    def present(self, identity: str) -> bool:
        with self._lock:
            return any(identity in s for s in self.stores.values())

    def preview(self, identity: str) -> bool:
        return self.present(identity)

    def erase(self, identity: str) -> bool:
        removed = False
        with self._lock:
            for store in self.stores.values():
                if identity in store:
                    del store[identity]
                    removed = True
        return removed


class DataStoreRegistry:
    """
    The fixed, ordered list of erasure targets.

    Construction fails if any of the twelve targets is missing, repeated,
    or unknown; the orchestrator can then iterate without further checks.
    """

    def __init__(self, targets: Iterable[ErasureTarget]):
        by_name: Dict[ErasureTargetName, ErasureTarget] = {}
        for target in targets:
            try:
                name = ErasureTargetName(target.name)
            except ValueError:
                raise RegistryError(f"Unknown erasure target: {target.name!r}")
            if name in by_name:
                raise RegistryError(f"Duplicate erasure target: {name.value}")
            by_name[name] = target

        missing = [n.value for n in ERASURE_ORDER if n not in by_name]
        if missing:
            raise RegistryError(f"Missing erasure targets: {', '.join(missing)}")

        self._targets: Dict[ErasureTargetName, ErasureTarget] = {
            name: by_name[name] for name in ERASURE_ORDER
        }

    def __iter__(self) -> Iterator[Tuple[ErasureTargetName, ErasureTarget]]:
        return iter(list(self._targets.items()))

    def __len__(self) -> int:
        return len(self._targets)

    def __getitem__(self, name: ErasureTargetName) -> ErasureTarget:
        return self._targets[ErasureTargetName(name)]

    @property
    def names(self) -> List[ErasureTargetName]:
        return list(self._targets)

    def replace(self, target: ErasureTarget) -> None:
        """Swap in a different backend for one target."""
        name = ErasureTargetName(target.name)
        self._targets[name] = target
        logger.info(f"Erasure target '{name.value}' replaced with {type(target).__name__}")

    def present_map(self, identity: str) -> Dict[ErasureTargetName, bool]:
        """present() for every target, in sweep order."""
        return {name: target.present(identity) for name, target in self}


def build_in_memory_registry() -> DataStoreRegistry:
    """Default registry wired to fresh in-memory stores."""
    keyed = {
        name: InMemoryKeyedTarget(name)
        for name in ERASURE_ORDER
        if name not in (ErasureTargetName.SESSIONS, ErasureTargetName.RATE_LIMIT_DATA)
    }
    sessions = InMemorySessionTarget()
    rate_limits = InMemoryCompositeTarget(
        ErasureTargetName.RATE_LIMIT_DATA,
        stores={"resend_attempts": {}, "reset_attempts": {}},
    )
    return DataStoreRegistry([*keyed.values(), sessions, rate_limits])
