"""
Directory Publisher

Advertises this host, its resources and its liveness in the shared
directory. Publishing is best effort: a failed put is logged and the next
heartbeat simply supersedes it.
"""

from typing import Any, Dict, Optional

from dock_broker.domain.entities import HostRecord
from dock_broker.domain.ports import IResourceProbePort, ISyncStorePort
from dock_broker.domain.value_objects import HostStatus
from dock_broker.infrastructure.config import Settings
from dock_broker.infrastructure.logging import get_logger

logger = get_logger(__name__)


class DirectoryPublisher:
    """
    Publishes the HostRecord of this process.

    The resource snapshot is taken once at start; heartbeats only refresh
    free memory and the update timestamp.
    """

    def __init__(
        self,
        settings: Settings,
        sync_store: ISyncStorePort,
        resource_probe: IResourceProbePort,
    ):
        self._settings = settings
        self._store = sync_store
        self._probe = resource_probe
        self._record: Optional[HostRecord] = None

    @property
    def path(self) -> str:
        return f"{self._settings.directory_path}/{self._settings.host_name}"

    @property
    def record(self) -> Optional[HostRecord]:
        return self._record

    async def start(self) -> bool:
        """Take the resource snapshot and publish the host as online."""
        self._record = HostRecord(
            host_name=self._settings.host_name,
            snapshot=self._probe.snapshot(),
        )
        logger.info(
            "Publishing host record",
            host_name=self._record.host_name,
            cpu_count=self._record.snapshot.cpu_count,
            total_memory=self._record.snapshot.total_memory,
        )
        return await self._publish(self._record.to_record())

    async def heartbeat(self) -> bool:
        """Republish with refreshed free memory and timestamp."""
        if self._record is None:
            return await self.start()
        if self._record.status is HostStatus.OFFLINE:
            return False
        self._record.refresh(self._probe.free_memory())
        return await self._publish(self._record.to_record())

    async def shutdown(self) -> bool:
        """Mark the host offline."""
        if self._record is None:
            return False
        self._record.mark_offline()
        logger.info("Publishing host offline", host_name=self._record.host_name)
        return await self._publish(
            {
                "status": self._record.status.value,
                "lastUpdate": self._record.last_update,
            }
        )

    async def _publish(self, payload: Dict[str, Any]) -> bool:
        try:
            await self._store.put(self.path, payload)
            return True
        except Exception as e:
            logger.warning("Directory publish failed", path=self.path, error=str(e))
            return False
