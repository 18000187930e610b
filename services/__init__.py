# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Service layer
# PURPOSE: Recipe definitions, execution events, artifact storage
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services Module

- RecipeService: loads, validates and versions recipe definitions
- EventService: in-process progress channel for executions
- ArtifactStore: where generated media is persisted
"""

from services.recipe_service import RecipeService
from services.event_service import EventService, EventSubscriber
from services.artifact_store import (
    ArtifactStore,
    BlobArtifactStore,
    LocalArtifactStore,
    InMemoryArtifactStore,
)

__all__ = [
    "RecipeService",
    "EventService",
    "EventSubscriber",
    "ArtifactStore",
    "BlobArtifactStore",
    "LocalArtifactStore",
    "InMemoryArtifactStore",
]
