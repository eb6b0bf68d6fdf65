"""
Host resource probe

Reads CPU and memory capacity of the local host with psutil.
"""

import sys

import psutil

from dock_broker.domain.ports import IResourceProbePort
from dock_broker.domain.value_objects import ResourceSnapshot


class PsutilResourceProbe(IResourceProbePort):
    """
    psutil-backed probe.

    Free memory is psutil's "available" figure: memory that can be handed
    to new processes without swapping.
    """

    def __init__(self, platform: str = sys.platform):
        self._platform = platform

    def snapshot(self) -> ResourceSnapshot:
        memory = psutil.virtual_memory()
        return ResourceSnapshot(
            cpu_count=psutil.cpu_count(logical=True) or 1,
            total_memory=int(memory.total),
            free_memory=int(memory.available),
            platform=self._platform,
        )

    def free_memory(self) -> int:
        return int(psutil.virtual_memory().available)
