"""
Orphan Reclaimer

Periodic sweep over every live sandbox process. Anything older than the
execution timeout window is stopped, whichever instance started it. This is
the backstop for supervisors that crashed or missed their timer.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict

from dock_broker.domain.ports import ISandboxRuntimePort
from dock_broker.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrphanReclaimer:
    """Stateless sweep of stale sandbox processes."""

    def __init__(
        self,
        sandbox_runtime: ISandboxRuntimePort,
        timeout_seconds: float,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            sandbox_runtime: Runtime to list and stop processes with
            timeout_seconds: Age after which a process is considered orphaned
            clock: Returns the current aware UTC time
        """
        self._runtime = sandbox_runtime
        self._timeout = timeout_seconds
        self._clock = clock

    async def sweep(self) -> Dict[str, Any]:
        """
        Stop every live process older than the timeout window.

        A failed stop is logged and the pass continues.

        Returns:
            dict: sweep statistics
                - total_checked: processes listed
                - reclaimed: processes stopped
                - errors: error messages
        """
        stats: Dict[str, Any] = {
            "total_checked": 0,
            "reclaimed": 0,
            "errors": [],
        }

        try:
            processes = await self._runtime.list_processes()
        except Exception as e:
            error_msg = f"Failed to list sandbox processes: {e}"
            logger.error(error_msg, exc_info=True)
            stats["errors"].append(error_msg)
            return stats

        stats["total_checked"] = len(processes)
        now = self._clock()

        for process in processes:
            age = process.age_seconds(now)
            if age <= self._timeout:
                continue
            try:
                await self._runtime.stop(process.id)
                stats["reclaimed"] += 1
                logger.info("Reclaimed orphaned sandbox", sandbox_id=process.id, age_seconds=round(age, 1))
            except Exception as e:
                error_msg = f"Error stopping sandbox {process.id}: {e}"
                logger.error(error_msg, exc_info=True)
                stats["errors"].append(error_msg)

        logger.info(
            "Orphan sweep completed",
            checked=stats["total_checked"],
            reclaimed=stats["reclaimed"],
            errors=len(stats["errors"]),
        )
        return stats
