"""
Unit tests for JobIntake.

Checks which records are accepted as jobs and that each job reaches the
supervisor exactly once.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from dock_broker.application.services.job_intake import JobIntake
from dock_broker.domain.value_objects import RequestChannel


CHANNEL = RequestChannel(host_name="worker-1", client_id="client-a")


@pytest.fixture
def supervisor():
    mock = Mock()
    mock.supervise = AsyncMock()
    return mock


@pytest.fixture
def intake(store, supervisor):
    return JobIntake(store, supervisor)


def supervised_ids(supervisor):
    return [call.args[0].job_id for call in supervisor.supervise.call_args_list]


class TestJobIntake:
    """Tests for JobIntake filtering and dedup."""

    @pytest.mark.asyncio
    async def test_accepts_pending_job(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        await store.put(CHANNEL.job_path("job-1"), {"code": "print(1)", "processed": False})
        await intake.drain()

        assert supervised_ids(supervisor) == ["job-1"]
        job = supervisor.supervise.call_args.args[0]
        assert job.code == "print(1)"
        assert job.channel == CHANNEL

    @pytest.mark.asyncio
    async def test_missing_processed_flag_counts_as_pending(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        await store.put(CHANNEL.job_path("job-1"), {"code": "print(1)"})
        await intake.drain()

        assert supervised_ids(supervisor) == ["job-1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "record",
        [
            {"code": "print(1)", "processed": True},
            {"code": "", "processed": False},
            {"processed": False},
            {"code": 42, "processed": False},
            {"code": "print(1)", "processed": "no"},
        ],
    )
    async def test_ignores_processed_and_malformed(self, intake, store, supervisor, record):
        await intake.open(CHANNEL)
        await store.put(CHANNEL.job_path("job-1"), record)
        await intake.drain()

        supervisor.supervise.assert_not_called()

    @pytest.mark.asyncio
    async def test_retraction_is_ignored(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        await store.put(CHANNEL.job_path("job-1"), None)

        supervisor.supervise.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_jobs_replayed_on_open(self, intake, store, supervisor):
        await store.put(CHANNEL.job_path("old"), {"code": "print(0)", "processed": False})
        await store.put(CHANNEL.job_path("done"), {"code": "print(0)", "processed": True, "output": "0"})

        await intake.open(CHANNEL)
        await intake.drain()

        assert supervised_ids(supervisor) == ["old"]

    @pytest.mark.asyncio
    async def test_redelivery_does_not_execute_twice(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        path = CHANNEL.job_path("job-1")
        await store.put(path, {"code": "print(1)", "processed": False})
        await store.put(path, {"code": "print(1)", "processed": False})
        await intake.drain()
        await store.put(path, {"code": "print(1)", "processed": False})
        await intake.drain()

        assert supervised_ids(supervisor) == ["job-1"]
        assert intake.is_accepted(CHANNEL, "job-1")

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, intake, store, supervisor):
        assert await intake.open(CHANNEL) is True
        assert await intake.open(CHANNEL) is False

        await store.put(CHANNEL.job_path("job-1"), {"code": "print(1)"})
        await intake.drain()

        assert supervisor.supervise.call_count == 1
        assert intake.open_namespaces == {CHANNEL.namespace}

    @pytest.mark.asyncio
    async def test_channel_is_a_multi_job_mailbox(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        for i in range(3):
            await store.put(CHANNEL.job_path(f"job-{i}"), {"code": f"print({i})"})
        await intake.drain()

        assert sorted(supervised_ids(supervisor)) == ["job-0", "job-1", "job-2"]

    @pytest.mark.asyncio
    async def test_other_channels_are_not_observed(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        other = RequestChannel(host_name="worker-1", client_id="client-b")
        await store.put(other.job_path("job-1"), {"code": "print(1)"})
        await intake.drain()

        supervisor.supervise.assert_not_called()

    @pytest.mark.asyncio
    async def test_supervisor_crash_does_not_stop_intake(self, intake, store, supervisor):
        supervisor.supervise.side_effect = [RuntimeError("boom"), None]
        await intake.open(CHANNEL)

        await store.put(CHANNEL.job_path("job-1"), {"code": "print(1)"})
        await intake.drain()
        await store.put(CHANNEL.job_path("job-2"), {"code": "print(2)"})
        await intake.drain()

        assert supervised_ids(supervisor) == ["job-1", "job-2"]
        assert intake.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_close_stops_observing(self, intake, store, supervisor):
        await intake.open(CHANNEL)
        intake.close()

        await store.put(CHANNEL.job_path("job-1"), {"code": "print(1)"})
        await intake.drain()

        supervisor.supervise.assert_not_called()
