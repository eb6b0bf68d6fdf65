from dock_broker.application.dto.records import ConnectionRequestRecord, JobRecord

__all__ = ["ConnectionRequestRecord", "JobRecord"]
