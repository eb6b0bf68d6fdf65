"""
Broker composition root

Wires settings, adapters and services together, registers the background
loops and handles termination signals.
"""

import asyncio
import signal
from typing import Optional

from dock_broker.application.services import (
    BindingListener,
    DirectoryPublisher,
    ExecutionSupervisor,
    JobIntake,
    OrphanReclaimer,
)
from dock_broker.domain.ports import IResourceProbePort, ISandboxRuntimePort, ISyncStorePort
from dock_broker.infrastructure.background_tasks import BackgroundTaskManager
from dock_broker.infrastructure.config import Settings, get_settings
from dock_broker.infrastructure.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from dock_broker.infrastructure.resources import PsutilResourceProbe
from dock_broker.infrastructure.sandbox import DockerSandboxRuntime
from dock_broker.infrastructure.sync import InMemorySyncStore

logger = get_logger(__name__)


class BrokerService:
    """
    One broker host.

    start() advertises the host and begins listening; shutdown() publishes
    the offline record and stops the background loops. In-flight jobs are
    not cancelled on shutdown: their own timers or the next sweep on any
    host clean them up.
    """

    def __init__(
        self,
        settings: Settings,
        sync_store: ISyncStorePort,
        sandbox_runtime: ISandboxRuntimePort,
        resource_probe: IResourceProbePort,
    ):
        self.settings = settings
        self.sync_store = sync_store
        self.sandbox_runtime = sandbox_runtime

        self.supervisor = ExecutionSupervisor(settings, sync_store, sandbox_runtime, resource_probe)
        self.intake = JobIntake(sync_store, self.supervisor)
        self.listener = BindingListener(settings, sync_store, self.intake)
        self.publisher = DirectoryPublisher(settings, sync_store, resource_probe)
        self.reclaimer = OrphanReclaimer(sandbox_runtime, settings.execution_timeout_seconds)

        self.tasks = BackgroundTaskManager()
        self.tasks.register_task(
            name="directory-heartbeat",
            func=self.publisher.heartbeat,
            interval_seconds=settings.heartbeat_interval_seconds,
            initial_delay_seconds=settings.heartbeat_interval_seconds,
        )
        self.tasks.register_task(
            name="orphan-sweep",
            func=self.reclaimer.sweep,
            interval_seconds=settings.sweep_interval_seconds,
            initial_delay_seconds=settings.sweep_interval_seconds,
        )

        self._stop_event: Optional[asyncio.Event] = None
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await self.publisher.start()
        await self.tasks.start_all()
        await self.listener.start()
        logger.info("Broker started", host_name=self.settings.host_name)

    async def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        logger.info("Broker shutting down", in_flight=self.intake.in_flight_count)
        await self.publisher.shutdown()
        self.listener.stop()
        self.intake.close()
        await self.tasks.stop_all()
        await self.supervisor.close()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def register_signal_handlers(self) -> None:
        """Route SIGTERM and SIGINT to request_stop()."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(self._on_signal, s))

    def _on_signal(self, signum: int) -> None:
        logger.info("Shutdown signal received", signal=signum)
        self.request_stop()

    async def run(self) -> None:
        """Run until a termination signal or request_stop()."""
        self._stop_event = asyncio.Event()
        self.register_signal_handlers()
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.shutdown()


def build_broker(
    settings: Optional[Settings] = None,
    sync_store: Optional[ISyncStorePort] = None,
    sandbox_runtime: Optional[ISandboxRuntimePort] = None,
    resource_probe: Optional[IResourceProbePort] = None,
) -> BrokerService:
    """Assemble a BrokerService, defaulting every missing adapter."""
    settings = settings or get_settings()
    if sandbox_runtime is None:
        sandbox_runtime = DockerSandboxRuntime(
            docker_url=settings.docker_url,
            stop_timeout=settings.stop_timeout_seconds,
            label_filter=settings.reclaim_label,
        )
    return BrokerService(
        settings=settings,
        sync_store=sync_store or InMemorySyncStore(),
        sandbox_runtime=sandbox_runtime,
        resource_probe=resource_probe or PsutilResourceProbe(),
    )


async def run_broker(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)
    bind_context(host_name=settings.host_name)
    broker = build_broker(settings)
    try:
        await broker.run()
    finally:
        await broker.sandbox_runtime.close()
        clear_context()


def main() -> None:
    asyncio.run(run_broker())


if __name__ == "__main__":
    main()
