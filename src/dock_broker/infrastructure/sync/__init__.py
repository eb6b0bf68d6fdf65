from dock_broker.infrastructure.sync.memory_store import InMemorySyncStore

__all__ = ["InMemorySyncStore"]
