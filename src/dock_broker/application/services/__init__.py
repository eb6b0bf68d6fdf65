"""
Application Services

Orchestrates domain objects to execute use cases.
"""

from dock_broker.application.services.execution_supervisor import ExecutionSupervisor
from dock_broker.application.services.job_intake import JobIntake
from dock_broker.application.services.binding_listener import BindingListener
from dock_broker.application.services.directory_publisher import DirectoryPublisher
from dock_broker.application.services.orphan_reclaimer import OrphanReclaimer

__all__ = [
    "ExecutionSupervisor",
    "JobIntake",
    "BindingListener",
    "DirectoryPublisher",
    "OrphanReclaimer",
]
