"""
Domain Ports

Port interfaces defining contracts between layers.
The sync store, the sandbox runtime and the host probe are all
reached through these ports.
"""

from .sync_store_port import ISyncStorePort, ChildCallback, Subscription
from .sandbox_runtime_port import ISandboxRuntimePort
from .resource_probe_port import IResourceProbePort

__all__ = [
    # Sync store
    "ISyncStorePort",
    "ChildCallback",
    "Subscription",
    # Sandbox runtime
    "ISandboxRuntimePort",
    # Resource probe
    "IResourceProbePort",
]
