"""
Binding Listener

Watches the shared request feed for connection requests addressed to this
host and opens a private request channel per client.
"""

from typing import Any, Dict, Optional, Set

from dock_broker.application.dto import ConnectionRequestRecord
from dock_broker.application.services.job_intake import JobIntake
from dock_broker.domain.ports import ISyncStorePort, Subscription
from dock_broker.domain.value_objects import RequestChannel
from dock_broker.infrastructure.config import Settings
from dock_broker.infrastructure.logging import get_logger
from dock_broker.shared.errors import RecordValidationError

logger = get_logger(__name__)


class BindingListener:
    """
    Binds clients to this host.

    The request channel of a client is derived from (host_name, client_id)
    only, so a redelivered or repeated request maps to the same channel and
    is ignored. Channels are never unbound.
    """

    def __init__(self, settings: Settings, sync_store: ISyncStorePort, job_intake: JobIntake):
        self._settings = settings
        self._store = sync_store
        self._intake = job_intake
        self._bound: Set[str] = set()
        self._subscription: Optional[Subscription] = None

    def derive_channel(self, client_id: str) -> RequestChannel:
        return RequestChannel(
            host_name=self._settings.host_name,
            client_id=client_id,
            root=self._settings.channel_root,
        )

    async def start(self) -> None:
        """Subscribe to the request feed."""
        if self._subscription is not None:
            return
        self._subscription = await self._store.on_each_child(
            self._settings.request_feed_path, self._on_request
        )
        logger.info(
            "Listening for connection requests",
            feed=self._settings.request_feed_path,
            host_name=self._settings.host_name,
        )

    async def _on_request(self, value: Optional[Dict[str, Any]], key: str) -> None:
        try:
            request = ConnectionRequestRecord.parse(value)
        except RecordValidationError as e:
            logger.debug("Skipping malformed connection request", request_id=key, reason=e.message)
            return

        if request.target_host != self._settings.host_name:
            return

        await self.bind(request.client_id)

    async def bind(self, client_id: str) -> bool:
        """
        Open the request channel of a client.

        Returns:
            True if a new channel was opened, False if already bound
        """
        channel = self.derive_channel(client_id)
        if channel.namespace in self._bound:
            logger.debug("Client already bound", client_id=client_id)
            return False

        self._bound.add(channel.namespace)
        logger.info("Client bound", client_id=client_id, namespace=channel.namespace)
        await self._intake.open(channel)
        return True

    @property
    def bound_namespaces(self) -> Set[str]:
        return set(self._bound)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
