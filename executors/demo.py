# ============================================================================
# DEMO PROVIDERS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Examples - Offline providers for every capability
# PURPOSE: Run recipes end-to-end without a model gateway
# CREATED: 19 OCT 2026
# ============================================================================
"""
Demo Providers

Deterministic stand-ins for the generative capabilities. They let the
sample recipes run locally and serve as templates for real providers.

build_default_registry() wires these together with the MergeProcessor
and, for each capability with a PROVIDER_<CAPABILITY>_URL set, an
HttpCapabilityProvider that becomes that capability's default.
"""

import asyncio
import hashlib
import json
import logging
from typing import Any, Dict, Optional

from core.contracts import ActionType
from executors.base import (
    ImageGenerationProvider,
    ImageResult,
    TextGenerationProvider,
    TextResult,
    VideoGenerationProvider,
    VideoResult,
)
from executors.data_processing import MergeProcessor
from executors.http_provider import HttpCapabilityProvider
from executors.registry import ProviderRegistry
from services.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


# 1x1 transparent PNG
_PLACEHOLDER_PNG = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000001e221bc330000000049454e44ae426082"
)


class EchoTextProvider(TextGenerationProvider):
    """
    Echoes the rendered prompt.

    With output_format "json" it returns a JSON document instead, so
    downstream nodes receive structured data:
    - for_each calls get {"index": i, "item": <item>, "prompt": ...}
    - otherwise a list of `count` (default 2) records
      {"name": "Item N", "prompt": ...}
    """

    def __init__(self, provider_id: str = "echo", delay_seconds: float = 0.0):
        super().__init__(provider_id, description="Echoes the prompt back")
        self.delay_seconds = delay_seconds

    async def generate(self, prompt: str, options: Dict[str, Any]) -> TextResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if options.get("output_format") != "json":
            return TextResult(text=prompt, usage={"prompt_chars": len(prompt)})

        if "item" in options:
            doc: Any = {"index": options.get("index"), "item": options["item"], "prompt": prompt}
        else:
            count = int(options.get("count", 2))
            doc = [{"name": f"Item {i + 1}", "prompt": prompt} for i in range(count)]
        return TextResult(text=json.dumps(doc, default=str))


class PlaceholderImageProvider(ImageGenerationProvider):
    """Returns a 1x1 PNG for bytes mode, or a fake URL keyed by prompt hash."""

    def __init__(self, provider_id: str = "placeholder", return_url: bool = False):
        super().__init__(provider_id, description="1x1 placeholder image")
        self.return_url = return_url

    async def generate(self, prompt: str, options: Dict[str, Any]) -> ImageResult:
        if self.return_url:
            digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
            return ImageResult(image_url=f"https://placeholder.local/images/{digest}.png")
        return ImageResult(image_bytes=_PLACEHOLDER_PNG)


class PlaceholderVideoProvider(VideoGenerationProvider):
    """Returns a fake video URL keyed by prompt hash."""

    def __init__(self, provider_id: str = "placeholder"):
        super().__init__(provider_id, description="Placeholder video reference")

    async def generate(self, prompt: str, options: Dict[str, Any]) -> VideoResult:
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
        return VideoResult(
            video_url=f"https://placeholder.local/videos/{digest}.mp4",
            duration_seconds=float(options.get("duration_seconds", 5)),
            resolution=options.get("resolution", "1280x720"),
        )


def build_default_registry(artifact_store: Optional[ArtifactStore] = None) -> ProviderRegistry:
    """
    Registry with demo providers, the merge processor and any HTTP
    providers configured through the environment.
    """
    registry = ProviderRegistry()
    registry.register(EchoTextProvider())
    registry.register(PlaceholderImageProvider())
    registry.register(PlaceholderVideoProvider())
    registry.register(MergeProcessor(artifact_store=artifact_store))

    for capability in (
        ActionType.TEXT_GENERATION,
        ActionType.IMAGE_GENERATION,
        ActionType.VIDEO_GENERATION,
    ):
        provider = HttpCapabilityProvider.from_env(capability)
        if provider is not None:
            registry.register(provider, default=True)
            logger.info(f"HTTP provider for {capability.value}: {provider.endpoint}")

    logger.info(f"Provider registry ready with {len(registry)} providers")
    return registry


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "EchoTextProvider",
    "PlaceholderImageProvider",
    "PlaceholderVideoProvider",
    "build_default_registry",
]
