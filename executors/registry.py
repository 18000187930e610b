# ============================================================================
# PROVIDER REGISTRY
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Provider registration and lookup
# PURPOSE: Map (capability, provider_id) to a provider implementation
# CREATED: 19 OCT 2026
# ============================================================================
"""
Provider Registry

Registry of capability providers. The dispatcher looks up the provider for
a node by its capability and the provider id named in the node's model
config, falling back to the capability's default provider.

Design:
- One registry instance per application (injected, not global)
- Fail-fast on duplicate registration
- First provider registered for a capability becomes its default unless
  another is registered with default=True
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.contracts import ActionType
from core.errors import DuplicateProviderError, ProviderNotFoundError
from executors.base import CapabilityProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Providers keyed by (capability, provider_id)."""

    def __init__(self):
        self._providers: Dict[Tuple[ActionType, str], CapabilityProvider] = {}
        self._defaults: Dict[ActionType, str] = {}
        self._registered_at: Dict[Tuple[ActionType, str], str] = {}

    def register(self, provider: CapabilityProvider, default: bool = False) -> CapabilityProvider:
        """
        Register a provider.

        Raises:
            DuplicateProviderError if (capability, provider_id) is taken
        """
        key = (provider.capability, provider.provider_id)
        if key in self._providers:
            raise DuplicateProviderError(provider.capability.value, provider.provider_id)

        self._providers[key] = provider
        self._registered_at[key] = datetime.utcnow().isoformat()
        if default or provider.capability not in self._defaults:
            self._defaults[provider.capability] = provider.provider_id

        logger.debug(
            f"Registered provider {provider.capability.value}/{provider.provider_id} "
            f"({type(provider).__name__})"
        )
        return provider

    def get(self, capability: ActionType, provider_id: Optional[str] = None) -> Optional[CapabilityProvider]:
        """Get a provider, or the capability default when provider_id is None."""
        target = provider_id or self._defaults.get(capability)
        if target is None:
            return None
        return self._providers.get((capability, target))

    def get_or_raise(self, capability: ActionType, provider_id: Optional[str] = None) -> CapabilityProvider:
        """
        Get a provider, raising if not found.

        Raises:
            ProviderNotFoundError
        """
        provider = self.get(capability, provider_id)
        if provider is None:
            raise ProviderNotFoundError(capability.value, provider_id)
        return provider

    def default_for(self, capability: ActionType) -> Optional[str]:
        return self._defaults.get(capability)

    def list_providers(self) -> List[Dict[str, Any]]:
        """List all registered providers with metadata."""
        result = []
        for key, provider in self._providers.items():
            info = provider.describe()
            info["is_default"] = self._defaults.get(key[0]) == key[1]
            info["registered_at"] = self._registered_at[key]
            result.append(info)
        return result

    def clear(self) -> None:
        """Remove every provider. Primarily for testing."""
        self._providers.clear()
        self._defaults.clear()
        self._registered_at.clear()

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, key: Tuple[ActionType, str]) -> bool:
        return key in self._providers


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ProviderRegistry"]
