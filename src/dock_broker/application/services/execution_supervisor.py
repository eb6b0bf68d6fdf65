"""
Execution Supervisor

Drives one job from acceptance to its single published result:

1. Compute a resource quota from the host's current free memory
2. Create and start a sandbox process for the submitted code
3. Race the output stream against the wall-clock timeout
4. Publish exactly one terminal result back into the job record
"""

import asyncio
from contextlib import aclosing
from typing import Optional, Set

from dock_broker.domain.entities import Job
from dock_broker.domain.ports import IResourceProbePort, ISandboxRuntimePort, ISyncStorePort
from dock_broker.domain.services import OutputBuffer
from dock_broker.domain.value_objects import JobResult, ResourceQuota, SandboxProcessSpec
from dock_broker.infrastructure.config import Settings
from dock_broker.infrastructure.logging import get_logger

logger = get_logger(__name__)

JOB_LABEL = "dock_broker.job"
HOST_LABEL = "dock_broker.host"


def _error_message(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__


class ExecutionSupervisor:
    """
    Owns the execution lifecycle of every accepted job.

    Each call to supervise() is independent; all writes to a job record go
    through the supervise() call owning that job.
    """

    def __init__(
        self,
        settings: Settings,
        sync_store: ISyncStorePort,
        sandbox_runtime: ISandboxRuntimePort,
        resource_probe: IResourceProbePort,
    ):
        self._settings = settings
        self._store = sync_store
        self._runtime = sandbox_runtime
        self._probe = resource_probe
        self._admission: Optional[asyncio.Semaphore] = None
        if settings.max_concurrent_jobs > 0:
            self._admission = asyncio.Semaphore(settings.max_concurrent_jobs)
        self._retractions: Set[asyncio.Task] = set()

    def compute_quota(self) -> ResourceQuota:
        """Quota from the free memory reported right now, never a cached value."""
        return ResourceQuota.from_free_memory(
            self._probe.free_memory(),
            fraction=self._settings.memory_fraction,
            cpu_quota=self._settings.cpu_quota,
            cpu_period=self._settings.cpu_period,
        )

    def build_process_spec(self, job: Job) -> SandboxProcessSpec:
        return SandboxProcessSpec(
            image=self._settings.sandbox_image,
            command=[*self._settings.interpreter_command, job.code],
            quota=job.quota,
            network_disabled=True,
            auto_remove=True,
            labels={
                JOB_LABEL: job.path,
                HOST_LABEL: self._settings.host_name,
            },
        )

    async def supervise(self, job: Job) -> JobResult:
        """
        Execute a job and publish its result.

        Args:
            job: Job in ACCEPTED state

        Returns:
            The published JobResult
        """
        log = logger.bind(job_id=job.job_id, namespace=job.channel.namespace)
        log.info("Job accepted")

        if self._admission is None:
            await self._execute(job, log)
        else:
            async with self._admission:
                await self._execute(job, log)

        return await self._publish(job, log)

    async def _execute(self, job: Job, log) -> None:
        try:
            job.mark_quota_computed(self.compute_quota())
        except Exception as e:
            log.error("Quota computation failed", error=str(e))
            job.mark_failed(_error_message(e))
            return

        job.mark_starting()
        spec = self.build_process_spec(job)
        try:
            handle = await self._runtime.create_process(spec)
            await self._runtime.start(handle)
        except Exception as e:
            log.error("Sandbox creation failed", error=_error_message(e))
            job.mark_failed(_error_message(e))
            return

        job.mark_running(handle)
        log = log.bind(sandbox_id=handle)
        log.info(
            "Sandbox running",
            memory=job.quota.memory_bytes,
            cpu_share=job.quota.cpu_share,
        )

        buffer = OutputBuffer()
        consumer = asyncio.create_task(self._collect_output(handle, buffer))
        done, _ = await asyncio.wait(
            {consumer},
            timeout=self._settings.execution_timeout_seconds,
        )

        if consumer not in done:
            # Timer won: mute the stream before stopping the process
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
            try:
                await self._runtime.stop(handle)
            except Exception as e:
                log.warning("Failed to stop timed-out sandbox", error=_error_message(e))
            job.mark_timed_out(self._settings.timeout_message)
            log.warning("Job timed out", timeout=self._settings.execution_timeout_seconds)
            return

        error = consumer.exception()
        if error is not None:
            log.error("Sandbox output stream failed", error=_error_message(error))
            job.mark_failed(_error_message(error))
            return

        job.mark_completed(buffer.text())
        log.info("Job completed", chunks=len(buffer))

    async def _collect_output(self, handle: str, buffer: OutputBuffer) -> None:
        stream = self._runtime.logs(handle, follow=True, stdout=True, stderr=True)
        async with aclosing(stream):
            async for chunk in stream:
                buffer.append(chunk)

    async def _publish(self, job: Job, log) -> JobResult:
        outcome = job.state
        result = job.mark_published()
        try:
            await self._store.put(job.path, result.to_record())
            log.info("Job result published", outcome=outcome.value, duration_ms=job.duration_ms)
        except Exception as e:
            log.error("Failed to publish job result", outcome=outcome.value, error=str(e), exc_info=True)

        self._schedule_retraction(job)
        return result

    def _schedule_retraction(self, job: Job) -> None:
        delay = self._settings.result_retention_seconds
        if delay < 0:
            return
        task = asyncio.create_task(self._retract_later(job.path, delay))
        self._retractions.add(task)
        task.add_done_callback(self._retractions.discard)

    async def _retract_later(self, path: str, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self._store.put(path, None)
            logger.debug("Retracted processed job record", path=path)
        except Exception as e:
            logger.warning("Failed to retract job record", path=path, error=str(e))

    async def close(self) -> None:
        """Cancel pending retractions."""
        for task in list(self._retractions):
            task.cancel()
        await asyncio.gather(*self._retractions, return_exceptions=True)
