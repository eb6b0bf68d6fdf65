"""
Error types

Domain errors describe rule violations inside the broker; infrastructure
errors wrap failures raised by the sandbox runtime or the sync store.
"""
from typing import Any, Optional


class DockBrokerError(Exception):
    """Base class for all broker errors."""


class DomainError(DockBrokerError):
    """Domain error base class."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidJobTransitionError(DomainError):
    """A job was asked to move to a state its current state does not allow."""
    pass


class RecordValidationError(DomainError):
    """An inbound record from the sync store does not match its schema."""
    pass


class InfrastructureError(DockBrokerError):
    """Infrastructure error base class."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class SandboxError(InfrastructureError):
    """Sandbox runtime error."""
    pass


class SandboxCreationError(SandboxError):
    """The runtime refused to create or start a sandbox process."""
    pass


class SandboxStreamError(SandboxError):
    """The output stream of a sandbox process failed mid-read."""
    pass


class SandboxStopError(SandboxError):
    """A sandbox process could not be stopped."""
    pass


class SyncStoreError(InfrastructureError):
    """Shared sync store error."""
    pass
