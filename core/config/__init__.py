# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the recipe engine.
"""

from core.config.defaults import (
    StoreBackend,
    ArtifactBackend,
    ExecutionDefaults,
    PollingDefaults,
    DatabaseDefaults,
    ArtifactDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

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
