"""
Broker Value Objects

Immutable value objects describing hosts, channels, quotas and sandbox
processes.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class HostStatus(str, Enum):
    """Liveness status advertised in the directory."""

    ONLINE = "online"
    OFFLINE = "offline"


class JobState(str, Enum):
    """Lifecycle state of a single job inside the execution supervisor."""

    ACCEPTED = "accepted"
    QUOTA_COMPUTED = "quota_computed"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    PUBLISHED = "published"


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Host resources at a point in time.

    Attributes:
        cpu_count: Logical CPU count
        total_memory: Total physical memory in bytes
        free_memory: Memory currently available in bytes
        platform: Platform tag (e.g. "linux")
    """

    cpu_count: int
    total_memory: int
    free_memory: int
    platform: str

    def with_free_memory(self, free_memory: int) -> "ResourceSnapshot":
        """Return a copy carrying a refreshed free-memory reading."""
        return ResourceSnapshot(
            cpu_count=self.cpu_count,
            total_memory=self.total_memory,
            free_memory=free_memory,
            platform=self.platform,
        )


@dataclass(frozen=True)
class ResourceQuota:
    """
    Resource ceiling for one sandbox process.

    Attributes:
        memory_bytes: Memory ceiling in bytes
        memory_swap_bytes: Memory + swap ceiling in bytes
        cpu_quota: CFS quota in microseconds per period
        cpu_period: CFS period in microseconds
    """

    memory_bytes: int
    memory_swap_bytes: int
    cpu_quota: int = 100000
    cpu_period: int = 100000

    @classmethod
    def from_free_memory(
        cls,
        free_memory: int,
        fraction: float = 0.1,
        cpu_quota: int = 100000,
        cpu_period: int = 100000,
    ) -> "ResourceQuota":
        """
        Compute a quota as a fraction of the host's current free memory.

        Args:
            free_memory: Free memory in bytes, read at job acceptance
            fraction: Share of free memory granted to the job (0 < fraction <= 1)
            cpu_quota: CFS quota in microseconds
            cpu_period: CFS period in microseconds

        Returns:
            ResourceQuota whose memory ceiling never exceeds free_memory

        Raises:
            ValueError: fraction out of range, or the share rounds down to
                zero bytes (the runtime reads a zero ceiling as unlimited)
        """
        if not 0 < fraction <= 1:
            raise ValueError("fraction must be in (0, 1]")
        memory = math.floor(max(free_memory, 0) * fraction)
        if memory < 1:
            raise ValueError(f"Insufficient free memory for a sandbox quota: {free_memory} bytes")
        return cls(
            memory_bytes=memory,
            memory_swap_bytes=memory,
            cpu_quota=cpu_quota,
            cpu_period=cpu_period,
        )

    @property
    def cpu_share(self) -> float:
        """Fraction of one core granted to the process."""
        return self.cpu_quota / self.cpu_period


@dataclass(frozen=True)
class RequestChannel:
    """
    Private request namespace shared by one host and one client.

    The namespace is a pure function of (host_name, client_id).
    """

    host_name: str
    client_id: str
    root: str = "requests"

    @property
    def namespace(self) -> str:
        return f"{self.root}/{self.host_name}/{self.client_id}"

    def job_path(self, job_id: str) -> str:
        return f"{self.namespace}/{job_id}"


@dataclass(frozen=True)
class SandboxProcessSpec:
    """
    Everything the sandbox runtime needs to launch one process.

    Attributes:
        image: Container image holding the interpreter
        command: Full command line, code included
        quota: Resource ceiling
        network_disabled: Whether the process gets no network at all
        auto_remove: Whether the runtime removes the process on exit
        labels: Labels attached to the process for identification
    """

    image: str
    command: List[str]
    quota: ResourceQuota
    network_disabled: bool = True
    auto_remove: bool = True
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SandboxProcessInfo:
    """A live process as reported by the runtime's listing."""

    id: str
    created_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds()


@dataclass(frozen=True)
class JobResult:
    """
    Terminal result written back into the job record.

    Exactly one of output / error is set.
    """

    code: str
    output: Optional[str] = None
    error: Optional[str] = None
    timestamp: int = 0

    def to_record(self) -> Dict[str, Any]:
        """Convert to the wire record published on the job path."""
        record: Dict[str, Any] = {
            "code": self.code,
            "processed": True,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            record["error"] = self.error
        else:
            record["output"] = self.output if self.output is not None else ""
        return record
