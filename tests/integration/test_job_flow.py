"""
End-to-end job flow through a fully wired broker.

The broker runs against the in-process sync store, a scripted sandbox
runtime and a fixed resource probe. A client is played by writing records
into the store exactly as a remote peer would.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from conftest import GIB, FakeSandboxRuntime, StaticResourceProbe, python_like
from dock_broker.bootstrap import build_broker
from dock_broker.domain.value_objects import SandboxProcessInfo

CLIENT = "client-a"
CHANNEL = f"requests/worker-1/{CLIENT}"


async def wait_for_processed(store, path, timeout=5.0):
    """Poll the store until the job record carries processed=true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        record = await store.get(path)
        if record and record.get("processed") is True:
            return record
        await asyncio.sleep(0.01)
    raise AssertionError(f"{path} was never processed")


@pytest_asyncio.fixture
async def broker(settings, store, runtime, probe):
    service = build_broker(
        settings=settings,
        sync_store=store,
        sandbox_runtime=runtime,
        resource_probe=probe,
    )
    await service.start()
    yield service
    await service.shutdown()


async def connect(store, client_id=CLIENT, target_host="worker-1"):
    await store.put(
        f"connectionRequests/{client_id}",
        {"clientId": client_id, "targetHost": target_host, "createdAt": 1700000000000},
    )


class TestHostDirectory:

    @pytest.mark.asyncio
    async def test_host_online_after_start(self, broker, store):
        record = await store.get("hosts/worker-1")

        assert record["hostName"] == "worker-1"
        assert record["status"] == "online"
        assert record["cpuCount"] == 8
        assert record["totalMemory"] == 16 * GIB
        assert record["freeMemory"] == 4 * GIB

    @pytest.mark.asyncio
    async def test_host_offline_after_shutdown(self, settings, store, runtime, probe):
        service = build_broker(settings, store, runtime, probe)
        await service.start()
        await service.shutdown()

        record = await store.get("hosts/worker-1")
        assert record["status"] == "offline"
        assert record["cpuCount"] == 8
        assert service.tasks.running is False

    @pytest.mark.asyncio
    async def test_background_tasks_registered(self, broker):
        assert broker.tasks.get_task_status() == {
            "directory-heartbeat": True,
            "orphan-sweep": True,
        }


class TestJobFlow:

    @pytest.mark.asyncio
    async def test_successful_job(self, broker, store, runtime):
        await connect(store)
        await store.put(f"{CHANNEL}/job-1", {"code": "print(1+1)", "processed": False})

        record = await wait_for_processed(store, f"{CHANNEL}/job-1")

        assert record["output"] == "2"
        assert "error" not in record
        assert isinstance(record["timestamp"], int)
        assert len(runtime.specs) == 1
        spec = runtime.specs[0]
        assert spec.command == ["python", "-c", "print(1+1)"]
        assert spec.network_disabled is True
        assert spec.quota.memory_bytes == int(4 * GIB * 0.1)

    @pytest.mark.asyncio
    async def test_timed_out_job(self, broker, store, runtime):
        await connect(store)
        await store.put(f"{CHANNEL}/job-2", {"code": "import time; time.sleep(10)"})

        record = await wait_for_processed(store, f"{CHANNEL}/job-2")

        assert record["error"] == "Execution timed out after 1 seconds"
        assert "output" not in record
        assert runtime.stop_calls == ["sbx-1"]
        assert runtime.cancelled_streams == ["sbx-1"]

    @pytest.mark.asyncio
    async def test_already_processed_job_is_ignored(self, broker, store, runtime):
        await connect(store)
        await store.put(
            f"{CHANNEL}/job-3",
            {"code": "print(1+1)", "processed": True, "output": "2", "timestamp": 1},
        )
        await broker.intake.drain()

        assert runtime.specs == []
        assert (await store.get(f"{CHANNEL}/job-3"))["timestamp"] == 1

    @pytest.mark.asyncio
    async def test_failing_code_reports_traceback_as_output(self, broker, store):
        await connect(store)
        await store.put(f"{CHANNEL}/job-4", {"code": "raise ValueError('x')"})

        record = await wait_for_processed(store, f"{CHANNEL}/job-4")

        assert "ValueError: x" in record["output"]
        assert "error" not in record

    @pytest.mark.asyncio
    async def test_concurrent_jobs_publish_independent_results(self, broker, store, runtime):
        await connect(store)
        await store.put(f"{CHANNEL}/job-a", {"code": "print(1+1)"})
        await store.put(f"{CHANNEL}/job-b", {"code": "print('b')"})

        record_a = await wait_for_processed(store, f"{CHANNEL}/job-a")
        record_b = await wait_for_processed(store, f"{CHANNEL}/job-b")

        assert record_a["output"] == "2"
        assert record_b["output"] == "ran print('b')"
        assert len(runtime.specs) == 2

    @pytest.mark.asyncio
    async def test_jobs_written_before_binding_are_run(self, broker, store):
        await store.put(f"{CHANNEL}/job-early", {"code": "print(1+1)"})
        await connect(store)

        record = await wait_for_processed(store, f"{CHANNEL}/job-early")

        assert record["output"] == "2"

    @pytest.mark.asyncio
    async def test_request_for_other_host_is_ignored(self, broker, store, runtime):
        await connect(store, client_id="client-b", target_host="worker-2")
        await store.put("requests/worker-1/client-b/job-1", {"code": "print(1+1)"})
        await broker.intake.drain()

        assert broker.listener.bound_namespaces == set()
        assert runtime.specs == []

    @pytest.mark.asyncio
    async def test_result_published_exactly_once(self, broker, store):
        await connect(store)
        await connect(store)
        path = f"{CHANNEL}/job-5"
        await store.put(path, {"code": "print(1+1)"})
        await store.put(path, {"code": "print(1+1)"})

        await wait_for_processed(store, path)
        await broker.intake.drain()

        result_puts = [value for put_path, value in store.put_log if put_path == path and value.get("processed")]
        assert len(result_puts) == 1


class TestOrphanSweep:

    @pytest.mark.asyncio
    async def test_sweep_reclaims_stale_processes(self, settings, store, probe):
        runtime = FakeSandboxRuntime(script=python_like)
        now = datetime.now(timezone.utc)
        runtime.processes = [
            SandboxProcessInfo(id="stale", created_at=now - timedelta(seconds=120)),
            SandboxProcessInfo(id="fresh", created_at=now),
        ]
        service = build_broker(settings, store, runtime, StaticResourceProbe())

        report = await service.reclaimer.sweep()

        assert report["reclaimed"] == 1
        assert runtime.stop_calls == ["stale"]
