"""
Resource Probe Port Interface

Defines the contract for reading host capacity.
"""

from abc import ABC, abstractmethod

from dock_broker.domain.value_objects import ResourceSnapshot


class IResourceProbePort(ABC):
    """Port interface for host resource readings."""

    @abstractmethod
    def snapshot(self) -> ResourceSnapshot:
        """Full resource snapshot (cpu, memory, platform)."""
        pass

    @abstractmethod
    def free_memory(self) -> int:
        """Memory currently available, in bytes."""
        pass
