"""
Background task management

Fixed-interval loops (directory heartbeat, orphan sweep) with graceful stop.
"""
from dock_broker.infrastructure.background_tasks.task_manager import (
    BackgroundTask,
    BackgroundTaskManager,
)

__all__ = [
    "BackgroundTask",
    "BackgroundTaskManager",
]
