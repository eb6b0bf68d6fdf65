"""Pytest configuration and fixtures."""

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

_src_path = Path(__file__).resolve().parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from dock_broker.domain.ports import IResourceProbePort, ISandboxRuntimePort
from dock_broker.domain.value_objects import (
    ResourceSnapshot,
    SandboxProcessInfo,
    SandboxProcessSpec,
)
from dock_broker.infrastructure.config import Settings
from dock_broker.infrastructure.sync import InMemorySyncStore

GIB = 1024 * 1024 * 1024


def docker_frame(payload: str, stream_type: int = 1) -> str:
    """
    Prefix payload with a Docker multiplex header.

    This is the raw attach/log stream shape, seen from runtimes that pass it
    through without demultiplexing (aiodocker demultiplexes it itself).
    """
    size = len(payload.encode("utf-8")).to_bytes(4, "big").decode("latin-1")
    return chr(stream_type) + "\x00\x00\x00" + size + payload


@dataclass
class ScriptedRun:
    """How a fake sandbox process behaves once started."""

    chunks: List[str] = field(default_factory=list)
    delay: float = 0.0
    hang: bool = False
    stream_error: Optional[Exception] = None


class FakeSandboxRuntime(ISandboxRuntimePort):
    """In-memory sandbox runtime driven by a script keyed on the submitted code."""

    def __init__(self, script: Optional[Callable[[str], ScriptedRun]] = None):
        self._script = script or (lambda code: ScriptedRun())
        self.specs: List[SandboxProcessSpec] = []
        self.started: List[str] = []
        self.stop_calls: List[str] = []
        self.processes: List[SandboxProcessInfo] = []
        self.create_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self.stop_errors: Dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.cancelled_streams: List[str] = []
        self.closed = False
        self._runs: Dict[str, ScriptedRun] = {}

    async def create_process(self, spec: SandboxProcessSpec) -> str:
        if self.create_error:
            raise self.create_error
        self.specs.append(spec)
        handle = f"sbx-{len(self.specs)}"
        self._runs[handle] = self._script(spec.command[-1])
        return handle

    async def start(self, handle: str) -> None:
        if self.start_error:
            raise self.start_error
        self.started.append(handle)

    async def stop(self, handle: str) -> None:
        self.stop_calls.append(handle)
        if handle in self.stop_errors:
            raise self.stop_errors[handle]

    async def logs(self, handle, follow=True, stdout=True, stderr=True):
        run = self._runs[handle]
        try:
            for chunk in run.chunks:
                if run.delay:
                    await asyncio.sleep(run.delay)
                yield chunk
            if run.stream_error is not None:
                raise run.stream_error
            if run.hang:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled_streams.append(handle)
            raise

    async def list_processes(self) -> List[SandboxProcessInfo]:
        if self.list_error:
            raise self.list_error
        return list(self.processes)

    async def close(self) -> None:
        self.closed = True


class StaticResourceProbe(IResourceProbePort):
    """Probe returning fixed readings; free memory can be changed between calls."""

    def __init__(self, free_memory: int = 4 * GIB, total_memory: int = 16 * GIB, cpu_count: int = 8):
        self.free = free_memory
        self.total = total_memory
        self.cpu_count = cpu_count
        self.free_memory_calls = 0

    def snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            cpu_count=self.cpu_count,
            total_memory=self.total,
            free_memory=self.free,
            platform="linux",
        )

    def free_memory(self) -> int:
        self.free_memory_calls += 1
        return self.free


def python_like(code: str) -> ScriptedRun:
    """Rough stand-in for `python -c <code>` inside the sandbox image."""
    if code == "print(1+1)":
        return ScriptedRun(chunks=[docker_frame("2\n")])
    if "time.sleep" in code:
        return ScriptedRun(hang=True)
    if code.startswith("raise ValueError"):
        traceback = (
            "Traceback (most recent call last):\n"
            '  File "<string>", line 1, in <module>\n'
            "ValueError: x\n"
        )
        return ScriptedRun(chunks=[docker_frame(traceback, stream_type=2)])
    return ScriptedRun(chunks=[docker_frame(f"ran {code}\n")])


@pytest.fixture
def settings() -> Settings:
    """Settings for a host named worker-1 with a short execution timeout."""
    return Settings(
        host_name="worker-1",
        execution_timeout_seconds=1,
        heartbeat_interval_seconds=30,
        sweep_interval_seconds=300,
    )


@pytest.fixture
def store() -> InMemorySyncStore:
    return InMemorySyncStore()


@pytest.fixture
def runtime() -> FakeSandboxRuntime:
    return FakeSandboxRuntime(script=python_like)


@pytest.fixture
def probe() -> StaticResourceProbe:
    return StaticResourceProbe()
