# ============================================================================
# CLIENT MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Client - HTTP polling client
# PURPOSE: Programmatic access to the recipe engine API
# CREATED: 19 OCT 2026
# ============================================================================

from client.recipe_client import (
    RecipeClient,
    RecipeClientError,
    PollingTimeoutError,
)

__all__ = [
    "RecipeClient",
    "RecipeClientError",
    "PollingTimeoutError",
]
