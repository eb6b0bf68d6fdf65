"""
Unit tests for inbound record schemas.
"""

import pytest

from dock_broker.application.dto import ConnectionRequestRecord, JobRecord
from dock_broker.shared.errors import RecordValidationError


class TestJobRecord:
    """Tests for JobRecord validation."""

    def test_pending(self):
        record = JobRecord.parse({"code": "print(1)", "processed": False})

        assert record.is_pending

    def test_extra_fields_ignored(self):
        record = JobRecord.parse({"code": "print(1)", "_": {"#": "soul"}, "clientMeta": 1})

        assert record.code == "print(1)"
        assert record.is_pending

    @pytest.mark.parametrize(
        "value",
        [
            {"code": "print(1)", "processed": True},
            {"code": ""},
            {"output": "2", "processed": True},
        ],
    )
    def test_not_pending(self, value):
        assert not JobRecord.parse(value).is_pending

    @pytest.mark.parametrize(
        "value",
        [
            None,
            {"code": ["print(1)"]},
            {"code": "print(1)", "processed": 1},
            {"code": "print(1)", "timestamp": "yesterday"},
        ],
    )
    def test_malformed(self, value):
        with pytest.raises(RecordValidationError):
            JobRecord.parse(value)


class TestConnectionRequestRecord:
    """Tests for ConnectionRequestRecord validation."""

    def test_aliases(self):
        record = ConnectionRequestRecord.parse(
            {"clientId": "client-a", "targetHost": "worker-1", "createdAt": 1700000000000}
        )

        assert record.client_id == "client-a"
        assert record.target_host == "worker-1"
        assert record.created_at == 1700000000000

    def test_missing_client(self):
        with pytest.raises(RecordValidationError) as exc_info:
            ConnectionRequestRecord.parse({"targetHost": "worker-1"})

        assert exc_info.value.details["errors"]
