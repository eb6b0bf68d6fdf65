"""
Broker Entities

Core domain entities: the advertised host record and the per-job state
machine driven by the execution supervisor.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from dock_broker.domain.value_objects import (
    HostStatus,
    JobResult,
    JobState,
    RequestChannel,
    ResourceQuota,
    ResourceSnapshot,
)
from dock_broker.shared.errors import InvalidJobTransitionError


def now_millis() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HostRecord:
    """
    Directory entry advertising one host.

    Never deleted, only superseded by newer puts on the same key.
    """

    host_name: str
    snapshot: ResourceSnapshot
    status: HostStatus = HostStatus.ONLINE
    last_update: int = field(default_factory=now_millis)

    def refresh(self, free_memory: int) -> None:
        """Heartbeat tick: refresh free memory and the timestamp."""
        self.snapshot = self.snapshot.with_free_memory(free_memory)
        self.last_update = now_millis()

    def mark_offline(self) -> None:
        self.status = HostStatus.OFFLINE
        self.last_update = now_millis()

    def to_record(self) -> Dict[str, Any]:
        return {
            "hostName": self.host_name,
            "cpuCount": self.snapshot.cpu_count,
            "totalMemory": self.snapshot.total_memory,
            "freeMemory": self.snapshot.free_memory,
            "platform": self.snapshot.platform,
            "status": self.status.value,
            "lastUpdate": self.last_update,
        }


_TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.ACCEPTED: frozenset({JobState.QUOTA_COMPUTED, JobState.FAILED}),
    JobState.QUOTA_COMPUTED: frozenset({JobState.STARTING, JobState.FAILED}),
    JobState.STARTING: frozenset({JobState.RUNNING, JobState.FAILED}),
    JobState.RUNNING: frozenset(
        {JobState.COMPLETED, JobState.FAILED, JobState.TIMED_OUT}
    ),
    JobState.COMPLETED: frozenset({JobState.PUBLISHED}),
    JobState.FAILED: frozenset({JobState.PUBLISHED}),
    JobState.TIMED_OUT: frozenset({JobState.PUBLISHED}),
    JobState.PUBLISHED: frozenset(),
}


@dataclass
class Job:
    """
    One code submission living inside a request channel.

    Tracks the lifecycle from acceptance to the single published result.
    Every mutation goes through _transition so illegal moves (including any
    move out of PUBLISHED) raise InvalidJobTransitionError.
    """

    job_id: str
    channel: RequestChannel
    code: str
    state: JobState = JobState.ACCEPTED
    quota: Optional[ResourceQuota] = None
    sandbox_id: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    accepted_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    published_at: Optional[int] = None

    @property
    def path(self) -> str:
        """Store path of the job record, unique per (namespace, job_id)."""
        return self.channel.job_path(self.job_id)

    def _transition(self, target: JobState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidJobTransitionError(
                f"Job {self.job_id} cannot move from {self.state.value} to {target.value}",
                details={"job_id": self.job_id, "from": self.state.value, "to": target.value},
            )
        self.state = target

    def mark_quota_computed(self, quota: ResourceQuota) -> None:
        self._transition(JobState.QUOTA_COMPUTED)
        self.quota = quota

    def mark_starting(self) -> None:
        self._transition(JobState.STARTING)

    def mark_running(self, sandbox_id: str) -> None:
        self._transition(JobState.RUNNING)
        self.sandbox_id = sandbox_id

    def mark_completed(self, output: str) -> None:
        self._transition(JobState.COMPLETED)
        self.output = output
        self.finished_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        self._transition(JobState.FAILED)
        self.error = error
        self.finished_at = _utcnow()

    def mark_timed_out(self, error: str) -> None:
        self._transition(JobState.TIMED_OUT)
        self.error = error
        self.output = None
        self.finished_at = _utcnow()

    def mark_published(self) -> JobResult:
        """
        Move to PUBLISHED and build the result record to write.

        Returns:
            JobResult carrying the echoed code and the single result field
        """
        self._transition(JobState.PUBLISHED)
        self.published_at = now_millis()
        # Handle dropped once published
        self.sandbox_id = None
        return JobResult(
            code=self.code,
            output=self.output if self.error is None else None,
            error=self.error,
            timestamp=self.published_at,
        )

    @property
    def duration_ms(self) -> Optional[int]:
        if self.finished_at:
            delta = self.finished_at - self.accepted_at
            return int(delta.total_seconds() * 1000)
        return None
