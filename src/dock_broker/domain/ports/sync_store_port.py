"""
Sync Store Port Interface

Defines the contract for the shared, eventually-consistent key/value
store through which hosts advertise themselves and jobs flow.
This is an output port - implemented by infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

ChildCallback = Callable[[Optional[Dict[str, Any]], str], Awaitable[None]]


class Subscription(ABC):
    """Handle returned by on_each_child; cancel() stops further delivery."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class ISyncStorePort(ABC):
    """
    Port interface for the replicated key/value store.

    Paths are "/"-separated. A record is a flat dict of fields.
    """

    @abstractmethod
    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Read the current record at path.

        Returns:
            The record, or None if absent or retracted
        """
        pass

    @abstractmethod
    async def put(self, path: str, value: Optional[Dict[str, Any]]) -> None:
        """
        Create or update the record at path.

        Fields of value are merged into the existing record (last write wins
        per field). A None value retracts the record.

        Raises:
            SyncStoreError: the store rejected or could not apply the write
        """
        pass

    @abstractmethod
    async def on_each_child(self, path: str, callback: ChildCallback) -> Subscription:
        """
        Subscribe to every existing and future direct child of path.

        The callback receives (value, key) for each child, at-least-once,
        including children that appear after subscription.
        """
        pass
