from dock_broker.infrastructure.sandbox.docker_runtime import DockerSandboxRuntime

__all__ = ["DockerSandboxRuntime"]
