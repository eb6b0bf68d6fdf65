"""
Sandbox Runtime Port Interface

Defines the contract for creating, observing and stopping isolated
sandbox processes.
This is an output port - implemented by infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from dock_broker.domain.value_objects import SandboxProcessInfo, SandboxProcessSpec


class ISandboxRuntimePort(ABC):
    """
    Port interface for the sandbox runtime.

    Handles are opaque runtime identifiers (container ids for Docker).
    """

    @abstractmethod
    async def create_process(self, spec: SandboxProcessSpec) -> str:
        """
        Create a sandbox process without starting it.

        Returns:
            Process handle

        Raises:
            SandboxCreationError: If the runtime rejects the request
        """
        pass

    @abstractmethod
    async def start(self, handle: str) -> None:
        """
        Start a created process.

        Raises:
            SandboxCreationError: If the process cannot be started
        """
        pass

    @abstractmethod
    async def stop(self, handle: str) -> None:
        """
        Stop a running process.

        Raises:
            SandboxStopError: If the runtime fails to stop it
        """
        pass

    @abstractmethod
    def logs(
        self,
        handle: str,
        follow: bool = True,
        stdout: bool = True,
        stderr: bool = True,
    ) -> AsyncIterator[str]:
        """
        Stream the combined output of a process, in runtime delivery order.

        Iteration ends when the process exits. Transport failures surface
        as SandboxStreamError from the iterator.
        """
        pass

    @abstractmethod
    async def list_processes(self) -> List[SandboxProcessInfo]:
        """List every live sandbox process visible to the runtime."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the runtime connection."""
        pass
