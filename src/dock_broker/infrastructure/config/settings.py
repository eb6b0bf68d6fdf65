"""
Application settings

Loaded once at startup with pydantic-settings and passed by reference to
the components that need host identity or tunables.
"""
import socket
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Broker configuration, read from DOCK_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="DOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============== Host identity ==============
    host_name: str = Field(default_factory=lambda: socket.gethostname())

    # ============== Logging ==============
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    # ============== Store layout ==============
    directory_path: str = Field(default="hosts", description="Directory of host records")
    request_feed_path: str = Field(default="connectionRequests")
    channel_root: str = Field(default="requests", description="Root of derived request channels")

    # ============== Docker ==============
    docker_url: Optional[str] = Field(
        default=None,
        description="Docker daemon URL; None lets aiodocker use DOCKER_HOST or the local socket",
    )
    sandbox_image: str = Field(default="python:alpine")
    interpreter_command: List[str] = Field(default_factory=lambda: ["python", "-c"])
    stop_timeout_seconds: int = Field(default=5, ge=0, le=60)

    # ============== Execution ==============
    execution_timeout_seconds: int = Field(default=30, ge=1, le=3600)
    memory_fraction: float = Field(default=0.1, gt=0, le=1)
    cpu_quota: int = Field(default=100000, ge=1000)
    cpu_period: int = Field(default=100000, ge=1000, le=1000000)
    max_concurrent_jobs: int = Field(
        default=-1, ge=-1, description="Cap on concurrently running sandboxes, -1 means unlimited"
    )
    result_retention_seconds: int = Field(
        default=-1, ge=-1, description="Delay before a published job is retracted, -1 keeps it forever"
    )

    # ============== Background tasks ==============
    heartbeat_interval_seconds: int = Field(default=30, ge=1)
    sweep_interval_seconds: int = Field(default=300, ge=1)
    reclaim_label: Optional[str] = Field(
        default=None, description="Only reclaim processes carrying this label; None sweeps everything"
    )

    @property
    def timeout_message(self) -> str:
        return f"Execution timed out after {self.execution_timeout_seconds} seconds"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
