# ============================================================================
# RECIPE SERVICE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Recipe definition management
# PURPOSE: Load, version and cache recipe definitions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Service

Loads recipe definitions from YAML files and provides lookup by id and
version. Every definition is validated as a DAG before it is accepted.

Versioning:
- Each (recipe_id, version) is immutable once registered
- One version per recipe is active; get() returns it, or the highest
  version when none is marked active
- create_version() derives a new version from the current one and makes
  it active; executions already running keep their own snapshot

Recipe files are stored in the recipes/ directory (RECIPES_DIR).
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from core.errors import RecipeNotFoundError
from core.models import RecipeDefinition
from orchestrator.engine.validator import DAGValidator

logger = logging.getLogger(__name__)


class RecipeService:
    """Service for loading and managing recipe definitions."""

    def __init__(self, recipes_dir: Optional[str] = None, validator: Optional[DAGValidator] = None):
        """
        Initialize recipe service.

        Args:
            recipes_dir: Directory containing recipe YAML files.
                         Defaults to RECIPES_DIR or ./recipes/
        """
        recipes_dir = recipes_dir or os.environ.get("RECIPES_DIR")
        if recipes_dir:
            self.recipes_dir = Path(recipes_dir)
        else:
            self.recipes_dir = Path(__file__).parent.parent / "recipes"

        self.validator = validator or DAGValidator()
        self._versions: Dict[str, Dict[int, RecipeDefinition]] = {}
        self._loaded = False

    # =========================================================================
    # LOADING
    # =========================================================================

    def load_all(self) -> int:
        """
        Load all recipe definitions from the recipes directory.

        Invalid files are logged and skipped.

        Returns:
            Number of recipes loaded
        """
        self._loaded = True

        if not self.recipes_dir.exists():
            logger.warning(f"Recipes directory not found: {self.recipes_dir}")
            return 0

        count = 0
        files = sorted(self.recipes_dir.glob("*.yaml")) + sorted(self.recipes_dir.glob("*.yml"))
        for yaml_file in files:
            try:
                recipe = self._load_yaml(yaml_file)
                self.register(recipe)
                count += 1
                logger.info(f"Loaded recipe: {recipe.recipe_id} v{recipe.version}")
            except Exception as e:
                logger.error(f"Failed to load {yaml_file}: {e}")

        logger.info(f"Loaded {count} recipes from {self.recipes_dir}")
        return count

    def _load_yaml(self, path: Path) -> RecipeDefinition:
        with open(path) as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Recipe file {path} does not contain a mapping")
        return RecipeDefinition.model_validate(data)

    def reload(self) -> int:
        """Reload all recipes from disk, dropping programmatic registrations."""
        self._versions.clear()
        self._loaded = False
        return self.load_all()

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_all()

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, recipe_id: str) -> Optional[RecipeDefinition]:
        """
        Get the current version of a recipe.

        Returns:
            The active version, else the highest version, else None
        """
        self._ensure_loaded()

        versions = self._versions.get(recipe_id)
        if not versions:
            return None

        active = [v for v in versions.values() if v.is_active]
        if active:
            return max(active, key=lambda r: r.version)
        return versions[max(versions)]

    def get_version(self, recipe_id: str, version: int) -> Optional[RecipeDefinition]:
        self._ensure_loaded()
        return self._versions.get(recipe_id, {}).get(version)

    def get_or_raise(self, recipe_id: str, version: Optional[int] = None) -> RecipeDefinition:
        """
        Get a recipe (or a specific version), raising if not found.

        Raises:
            RecipeNotFoundError
        """
        if version is None:
            recipe = self.get(recipe_id)
        else:
            recipe = self.get_version(recipe_id, version)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id, version)
        return recipe

    def list_all(self, stage_type: Optional[str] = None, active_only: bool = False) -> List[RecipeDefinition]:
        """
        Current version of every recipe.

        Args:
            stage_type: Only recipes for this stage type
            active_only: Skip recipes with no active version
        """
        self._ensure_loaded()

        recipes = []
        for recipe_id in sorted(self._versions):
            recipe = self.get(recipe_id)
            if recipe is None:
                continue
            if active_only and not recipe.is_active:
                continue
            if stage_type and recipe.stage_type != stage_type:
                continue
            recipes.append(recipe)
        return recipes

    def list_versions(self, recipe_id: str) -> List[RecipeDefinition]:
        self._ensure_loaded()
        versions = self._versions.get(recipe_id, {})
        return [versions[v] for v in sorted(versions)]

    # =========================================================================
    # REGISTRATION / VERSIONING
    # =========================================================================

    def register(self, recipe: RecipeDefinition) -> RecipeDefinition:
        """
        Register a recipe version.

        Raises:
            RecipeValidationError if the graph is invalid
            ValueError if this version already exists
        """
        self.validator.ensure_valid(recipe)

        versions = self._versions.setdefault(recipe.recipe_id, {})
        if recipe.version in versions:
            raise ValueError(f"Recipe {recipe.recipe_id} v{recipe.version} already exists")

        versions[recipe.version] = recipe
        if recipe.is_active:
            self._set_active(recipe.recipe_id, recipe.version)

        logger.info(f"Registered recipe: {recipe.recipe_id} v{recipe.version}")
        return versions[recipe.version]

    def create_version(self, recipe_id: str, changes: Dict[str, Any]) -> RecipeDefinition:
        """
        Create the next version of a recipe from the current one.

        Args:
            recipe_id: Recipe to derive from
            changes: Top-level fields to replace (nodes, execution_config, ...)

        Returns:
            The new, active version
        """
        base = self.get_or_raise(recipe_id)

        data = base.model_dump(by_alias=True)
        if "nodes" in changes and "edges" not in changes:
            # Re-derive edges from the new nodes' dependencies
            data.pop("edges", None)
        data.update(changes)
        data["recipe_id"] = recipe_id
        data["version"] = max(self._versions[recipe_id]) + 1
        data["created_at"] = datetime.utcnow()
        data["is_active"] = True

        recipe = RecipeDefinition.model_validate(data)
        return self.register(recipe)

    def activate(self, recipe_id: str, version: int) -> RecipeDefinition:
        """Make one version the active one."""
        self.get_or_raise(recipe_id, version)
        self._set_active(recipe_id, version)
        logger.info(f"Activated recipe {recipe_id} v{version}")
        return self._versions[recipe_id][version]

    def _set_active(self, recipe_id: str, version: int) -> None:
        # Stored definitions are replaced, never mutated
        versions = self._versions[recipe_id]
        for v, recipe in list(versions.items()):
            should_be_active = v == version
            if recipe.is_active != should_be_active:
                versions[v] = recipe.model_copy(update={"is_active": should_be_active})

    def __len__(self) -> int:
        return len(self._versions)

    def __contains__(self, recipe_id: str) -> bool:
        return recipe_id in self._versions


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["RecipeService"]
