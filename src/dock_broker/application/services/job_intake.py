"""
Job Intake

Watches request channels for job records and hands every new, valid,
unprocessed job to the execution supervisor, exactly once per job.
"""

import asyncio
from functools import partial
from typing import Any, Dict, Optional, Set

from dock_broker.application.dto import JobRecord
from dock_broker.application.services.execution_supervisor import ExecutionSupervisor
from dock_broker.domain.entities import Job
from dock_broker.domain.ports import ISyncStorePort, Subscription
from dock_broker.domain.value_objects import RequestChannel
from dock_broker.infrastructure.logging import get_logger
from dock_broker.shared.errors import RecordValidationError

logger = get_logger(__name__)


class JobIntake:
    """
    Multi-channel job mailbox reader.

    A channel is opened once and observed for the lifetime of the process.
    Accepted job paths are remembered, so redelivery of a job record never
    starts a second supervisor for it.
    """

    def __init__(self, sync_store: ISyncStorePort, supervisor: ExecutionSupervisor):
        self._store = sync_store
        self._supervisor = supervisor
        self._opened: Set[str] = set()
        self._subscriptions: Dict[str, Subscription] = {}
        self._accepted: Set[str] = set()
        self._in_flight: Set[asyncio.Task] = set()

    async def open(self, channel: RequestChannel) -> bool:
        """
        Start observing a request channel.

        Returns:
            True if the channel was opened, False if it already was
        """
        namespace = channel.namespace
        if namespace in self._opened:
            logger.debug("Request channel already open", namespace=namespace)
            return False

        # Reserved before awaiting: the subscription replays existing jobs
        self._opened.add(namespace)
        subscription = await self._store.on_each_child(
            namespace, partial(self._on_record, channel)
        )
        self._subscriptions[namespace] = subscription
        logger.info("Request channel opened", namespace=namespace)
        return True

    async def _on_record(
        self,
        channel: RequestChannel,
        value: Optional[Dict[str, Any]],
        key: str,
    ) -> None:
        try:
            record = JobRecord.parse(value)
        except RecordValidationError as e:
            logger.debug(
                "Skipping malformed job record",
                namespace=channel.namespace,
                job_id=key,
                reason=e.message,
                errors=e.details.get("errors"),
            )
            return

        if not record.is_pending:
            return

        job_path = channel.job_path(key)
        if job_path in self._accepted:
            logger.debug("Job already accepted", namespace=channel.namespace, job_id=key)
            return
        self._accepted.add(job_path)

        job = Job(job_id=key, channel=channel, code=record.code)
        task = asyncio.create_task(self._supervisor.supervise(job), name=f"job:{job_path}")
        self._in_flight.add(task)
        task.add_done_callback(self._on_job_done)

    def _on_job_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Supervisor crashed",
                task=task.get_name(),
                error=str(error),
                exc_info=(type(error), error, error.__traceback__),
            )

    def is_accepted(self, channel: RequestChannel, job_id: str) -> bool:
        return channel.job_path(job_id) in self._accepted

    @property
    def open_namespaces(self) -> Set[str]:
        return set(self._opened)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def drain(self) -> None:
        """Wait until every in-flight job has been published."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def close(self) -> None:
        """Stop observing every channel. In-flight jobs keep running."""
        for subscription in self._subscriptions.values():
            subscription.cancel()
        self._subscriptions.clear()
