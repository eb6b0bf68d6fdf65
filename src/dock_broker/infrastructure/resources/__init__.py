from dock_broker.infrastructure.resources.host_probe import PsutilResourceProbe

__all__ = ["PsutilResourceProbe"]
