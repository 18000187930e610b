# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for execution, polling and persistence
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for recipe execution. These can be overridden
via environment variables or a recipe's execution_config.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class StoreBackend(str, Enum):
    """Execution record backends."""
    POSTGRES = "postgres"
    MEMORY = "memory"


class ArtifactBackend(str, Enum):
    """Where generated media is persisted."""
    BLOB = "blob"
    LOCAL = "local"
    MEMORY = "memory"


@dataclass(frozen=True)
class ExecutionDefaults:
    """
    Defaults applied when a recipe or node does not say otherwise.

    Server-side timeouts must stay below the client polling window
    (PollingDefaults.window_seconds).
    """
    default_timeout_ms: int = 120_000
    default_max_retries: int = 1
    default_backoff_ms: int = 1000

    # Floor for the wait between retry attempts
    min_retry_delay_ms: int = 500

    # Pause between per-item provider calls in for_each nodes
    item_delay_ms: int = 500

    @classmethod
    def from_env(cls) -> "ExecutionDefaults":
        """Create from environment variables."""
        return cls(
            default_timeout_ms=int(os.getenv("EXECUTION_TIMEOUT_MS", 120_000)),
            default_max_retries=int(os.getenv("EXECUTION_MAX_RETRIES", 1)),
            default_backoff_ms=int(os.getenv("EXECUTION_BACKOFF_MS", 1000)),
            min_retry_delay_ms=int(os.getenv("EXECUTION_MIN_RETRY_DELAY_MS", 500)),
            item_delay_ms=int(os.getenv("EXECUTION_ITEM_DELAY_MS", 500)),
        )


@dataclass(frozen=True)
class PollingDefaults:
    """Client polling contract: fixed interval, bounded attempts."""
    interval_seconds: float = 5.0
    max_attempts: int = 36

    @property
    def window_seconds(self) -> float:
        return self.interval_seconds * self.max_attempts

    @classmethod
    def from_env(cls) -> "PollingDefaults":
        """Create from environment variables."""
        return cls(
            interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", 5.0)),
            max_attempts=int(os.getenv("POLL_MAX_ATTEMPTS", 36)),
        )


@dataclass(frozen=True)
class DatabaseDefaults:
    """Persistence settings."""
    backend: str = StoreBackend.POSTGRES.value
    schema: str = "recipeapp"
    pool_min_size: int = 2
    pool_max_size: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseDefaults":
        """Create from environment variables."""
        return cls(
            backend=os.getenv("EXECUTION_STORE", StoreBackend.POSTGRES.value).lower(),
            schema=os.getenv("DB_SCHEMA", "recipeapp"),
            pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", 2)),
            pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", 10)),
        )


@dataclass(frozen=True)
class ArtifactDefaults:
    """
    Artifact storage settings.

    The blob backend authenticates with a connection string when one is
    set, otherwise with DefaultAzureCredential against account_name.
    """
    backend: str = ArtifactBackend.LOCAL.value
    local_dir: str = "./artifacts"
    container: str = "recipe-artifacts"
    account_name: Optional[str] = None
    connection_string: Optional[str] = None
    sas_hours: int = 0

    @classmethod
    def from_env(cls) -> "ArtifactDefaults":
        """Create from environment variables."""
        return cls(
            backend=os.getenv("ARTIFACT_STORE", ArtifactBackend.LOCAL.value).lower(),
            local_dir=os.getenv("ARTIFACTS_DIR", "./artifacts"),
            container=os.getenv("ARTIFACT_CONTAINER", "recipe-artifacts"),
            account_name=os.getenv("AZURE_STORAGE_ACCOUNT"),
            connection_string=os.getenv("AZURE_STORAGE_CONNECTION_STRING"),
            sas_hours=int(os.getenv("ARTIFACT_SAS_HOURS", 0)),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    execution: ExecutionDefaults = field(default_factory=ExecutionDefaults)
    polling: PollingDefaults = field(default_factory=PollingDefaults)
    database: DatabaseDefaults = field(default_factory=DatabaseDefaults)
    artifacts: ArtifactDefaults = field(default_factory=ArtifactDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            execution=ExecutionDefaults.from_env(),
            polling=PollingDefaults.from_env(),
            database=DatabaseDefaults.from_env(),
            artifacts=ArtifactDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "StoreBackend",
    "ArtifactBackend",
    "ExecutionDefaults",
    "PollingDefaults",
    "DatabaseDefaults",
    "ArtifactDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
