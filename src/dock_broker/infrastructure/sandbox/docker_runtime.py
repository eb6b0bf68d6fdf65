"""
Docker sandbox runtime

Implements the sandbox runtime port with aiodocker. Each job runs in a
single-shot container: no network, capped memory/swap/CPU, all
capabilities dropped, removed by the daemon on exit.
"""
import inspect
import json
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

import aiohttp
from aiodocker import Docker
from aiodocker.exceptions import DockerError

from dock_broker.domain.ports import ISandboxRuntimePort
from dock_broker.domain.value_objects import SandboxProcessInfo, SandboxProcessSpec
from dock_broker.infrastructure.logging import get_logger
from dock_broker.shared.errors import (
    SandboxCreationError,
    SandboxStopError,
    SandboxStreamError,
)

logger = get_logger(__name__)

# Container already gone (auto-removed) or already stopped
_STOP_NOOP_STATUSES = (304, 404)


def _docker_message(error: DockerError) -> str:
    return getattr(error, "message", None) or str(error)


class DockerSandboxRuntime(ISandboxRuntimePort):
    """
    Docker-backed sandbox runtime.

    Connects to the daemon through a unix socket or TCP URL, lazily on
    first use.
    """

    def __init__(
        self,
        docker_url: Optional[str] = None,
        stop_timeout: int = 5,
        label_filter: Optional[str] = None,
    ):
        """
        Args:
            docker_url: Docker daemon URL
                - unix:///var/run/docker.sock (Unix socket)
                - tcp://localhost:2375 (TCP)
                - None: DOCKER_HOST or the platform default
            stop_timeout: Seconds the daemon waits before killing on stop
            label_filter: Restrict list_processes to containers carrying this label
        """
        self._docker_url = docker_url
        self._stop_timeout = stop_timeout
        self._label_filter = label_filter
        self._docker: Optional[Docker] = None
        self._initialized = False

    async def _ensure_docker(self) -> Docker:
        if not self._initialized:
            self._docker = Docker(url=self._docker_url)
            self._initialized = True
        return self._docker

    async def close(self) -> None:
        if self._docker:
            await self._docker.close()
            self._initialized = False

    def _build_container_config(self, spec: SandboxProcessSpec) -> dict:
        quota = spec.quota
        host_config = {
            "AutoRemove": spec.auto_remove,
            "Memory": quota.memory_bytes,
            "MemorySwap": quota.memory_swap_bytes,
            "CpuQuota": quota.cpu_quota,
            "CpuPeriod": quota.cpu_period,
            "CapDrop": ["ALL"],
            "SecurityOpt": ["no-new-privileges"],
        }
        if spec.network_disabled:
            host_config["NetworkMode"] = "none"

        return {
            "Image": spec.image,
            "Cmd": list(spec.command),
            "Labels": dict(spec.labels),
            "NetworkDisabled": spec.network_disabled,
            "AttachStdout": True,
            "AttachStderr": True,
            "Tty": False,
            "HostConfig": host_config,
        }

    async def create_process(self, spec: SandboxProcessSpec) -> str:
        docker = await self._ensure_docker()
        container_config = self._build_container_config(spec)
        try:
            container = await docker.containers.create(container_config)
        except DockerError as e:
            logger.error("Failed to create container", image=spec.image, error=_docker_message(e))
            raise SandboxCreationError(_docker_message(e), original_error=e) from e

        logger.info(
            "Created container",
            container_id=container.id,
            memory=spec.quota.memory_bytes,
            cpu_quota=spec.quota.cpu_quota,
        )
        return container.id

    async def start(self, handle: str) -> None:
        """
        Start a created container.

        A container that fails to start is deleted before the error is
        raised: AutoRemove never fires for it and the sweep only lists
        running containers.
        """
        docker = await self._ensure_docker()
        container = docker.containers.container(handle)
        try:
            await container.start()
            logger.info("Started container", container_id=handle)
        except DockerError as e:
            logger.error("Failed to start container", container_id=handle, error=_docker_message(e))
            await self._discard(container, handle)
            raise SandboxCreationError(_docker_message(e), original_error=e) from e

    async def _discard(self, container, handle: str) -> None:
        try:
            await container.delete(force=True)
            logger.info("Removed unstarted container", container_id=handle)
        except DockerError as e:
            if e.status == 404:
                return
            logger.warning(
                "Failed to remove unstarted container",
                container_id=handle,
                error=_docker_message(e),
            )

    async def stop(self, handle: str) -> None:
        docker = await self._ensure_docker()
        try:
            container = docker.containers.container(handle)
            await container.stop(t=self._stop_timeout)
            logger.info("Stopped container", container_id=handle)
        except DockerError as e:
            if e.status in _STOP_NOOP_STATUSES:
                logger.debug("Container already stopped or removed", container_id=handle)
                return
            raise SandboxStopError(_docker_message(e), original_error=e) from e

    async def logs(
        self,
        handle: str,
        follow: bool = True,
        stdout: bool = True,
        stderr: bool = True,
    ) -> AsyncIterator[str]:
        docker = await self._ensure_docker()
        try:
            container = docker.containers.container(handle)
            stream = container.log(stdout=stdout, stderr=stderr, follow=follow)
            if inspect.isawaitable(stream):
                stream = await stream
            if isinstance(stream, list):
                for chunk in stream:
                    yield chunk
            else:
                async for chunk in stream:
                    yield chunk
        except DockerError as e:
            raise SandboxStreamError(_docker_message(e), original_error=e) from e
        except aiohttp.ClientError as e:
            raise SandboxStreamError(str(e) or type(e).__name__, original_error=e) from e

    async def list_processes(self) -> List[SandboxProcessInfo]:
        docker = await self._ensure_docker()
        filters = {"status": ["running"]}
        if self._label_filter:
            filters["label"] = [self._label_filter]

        containers = await docker.containers.list(filters=json.dumps(filters))
        processes = []
        for container in containers:
            created = container["Created"]
            processes.append(
                SandboxProcessInfo(
                    id=container.id,
                    created_at=datetime.fromtimestamp(int(created), tz=timezone.utc),
                )
            )
        return processes
