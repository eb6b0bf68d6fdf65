"""
In-process sync store

Reference adapter for the sync store port: merge-on-put per field, None
retraction, and delivery of existing children to late subscribers. Used for
single-node deployments and by the test suite.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from dock_broker.domain.ports import ChildCallback, ISyncStorePort, Subscription
from dock_broker.infrastructure.logging import get_logger
from dock_broker.shared.errors import SyncStoreError

logger = get_logger(__name__)


def _normalize(path: str) -> str:
    normalized = path.strip("/")
    if not normalized:
        raise SyncStoreError(f"Invalid store path: {path!r}")
    return normalized


def _split(path: str) -> Tuple[str, str]:
    path = path.strip("/")
    if "/" not in path:
        return "", path
    parent, key = path.rsplit("/", 1)
    return parent, key


class _MemorySubscription(Subscription):
    def __init__(self, store: "InMemorySyncStore", path: str, callback: ChildCallback):
        self._store = store
        self.path = path
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._subscribers[self.path].remove(self)


class InMemorySyncStore(ISyncStorePort):
    """Dict-backed store living in the current process."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._subscribers: Dict[str, List[_MemorySubscription]] = defaultdict(list)
        self.put_log: List[Tuple[str, Optional[Dict[str, Any]]]] = []

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(_normalize(path))
        return dict(record) if record is not None else None

    async def put(self, path: str, value: Optional[Dict[str, Any]]) -> None:
        path = _normalize(path)
        if value is not None and not isinstance(value, dict):
            raise SyncStoreError(f"Record at {path} must be a dict or None, got {type(value).__name__}")
        self.put_log.append((path, dict(value) if value is not None else None))

        if value is None:
            self._records.pop(path, None)
            delivered = None
        else:
            merged = dict(self._records.get(path, {}))
            merged.update(value)
            self._records[path] = merged
            delivered = dict(merged)

        parent, key = _split(path)
        for subscription in list(self._subscribers.get(parent, [])):
            await self._deliver(subscription, delivered, key)

    async def on_each_child(self, path: str, callback: ChildCallback) -> Subscription:
        path = _normalize(path)
        subscription = _MemorySubscription(self, path, callback)
        self._subscribers[path].append(subscription)

        existing = [
            (record_path, record)
            for record_path, record in self._records.items()
            if _split(record_path)[0] == path
        ]
        for record_path, record in existing:
            await self._deliver(subscription, dict(record), _split(record_path)[1])
        return subscription

    async def _deliver(
        self,
        subscription: _MemorySubscription,
        value: Optional[Dict[str, Any]],
        key: str,
    ) -> None:
        if not subscription.active:
            return
        try:
            await subscription.callback(value, key)
        except Exception as e:
            logger.error(
                "Subscriber callback failed",
                path=subscription.path,
                key=key,
                error=str(e),
                exc_info=True,
            )
