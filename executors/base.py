# ============================================================================
# CAPABILITY INTERFACES
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Fixed-signature provider contracts per capability
# PURPOSE: What the dispatcher calls for each node type
# CREATED: 19 OCT 2026
# ============================================================================
"""
Capability Interfaces

One interface per capability, all with the same call shape:

    await provider.generate(prompt, options) -> output

options always carries:
- the node's model settings (model_name, temperature, max_tokens)
- the node's config (output_format, for_each, operation, ...)
- "params": the node's resolved inputs

Generative providers return a TextResult / ImageResult / VideoResult (or a
plain value); normalize_output() turns these into what is stored as the
node's output.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from core.contracts import ActionType

logger = logging.getLogger(__name__)


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass
class TextResult:
    """Text generation output."""
    text: str
    usage: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageResult:
    """Image generation output: raw bytes, a URL, or both."""
    image_bytes: Optional[bytes] = None
    image_url: Optional[str] = None
    mime_type: str = "image/png"
    usage: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.image_bytes is None and self.image_url is None:
            raise ValueError("ImageResult needs image_bytes or image_url")


@dataclass
class VideoResult:
    """Video generation output."""
    video_url: str
    duration_seconds: Optional[float] = None
    resolution: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    usage: Dict[str, Any] = field(default_factory=dict)


def normalize_output(result: Any) -> Any:
    """
    Map a provider result onto the value stored as the node's output.

    TextResult -> str, ImageResult -> bytes (else URL),
    VideoResult -> dict. Anything else passes through unchanged.
    """
    if isinstance(result, TextResult):
        return result.text
    if isinstance(result, ImageResult):
        return result.image_bytes if result.image_bytes is not None else result.image_url
    if isinstance(result, VideoResult):
        video = {
            "video_url": result.video_url,
            "duration_seconds": result.duration_seconds,
            "resolution": result.resolution,
        }
        video.update(result.extra)
        return video
    return result


def result_usage(result: Any) -> Dict[str, Any]:
    """Provider-reported usage, empty for plain values."""
    if isinstance(result, (TextResult, ImageResult, VideoResult)):
        return dict(result.usage)
    return {}


def result_metadata(result: Any) -> Dict[str, Any]:
    """What normalize_output leaves behind that the audit trail still wants."""
    if isinstance(result, ImageResult):
        metadata = {"mime_type": result.mime_type}
        if result.image_bytes is not None:
            metadata["size_bytes"] = len(result.image_bytes)
            if result.image_url:
                metadata["image_url"] = result.image_url
        return metadata
    return {}


# ============================================================================
# PROVIDER INTERFACES
# ============================================================================

class CapabilityProvider(ABC):
    """Base class for every provider registered with the ProviderRegistry."""

    capability: ClassVar[ActionType]

    def __init__(self, provider_id: str, description: str = ""):
        self.provider_id = provider_id
        self.description = description

    @abstractmethod
    async def generate(self, prompt: str, options: Dict[str, Any]) -> Any:
        """Perform one call. Raise on failure."""

    def describe(self) -> Dict[str, Any]:
        return {
            "capability": self.capability.value,
            "provider_id": self.provider_id,
            "description": self.description,
            "class": type(self).__name__,
        }


class TextGenerationProvider(CapabilityProvider):
    capability = ActionType.TEXT_GENERATION

    @abstractmethod
    async def generate(self, prompt: str, options: Dict[str, Any]) -> TextResult:
        ...


class ImageGenerationProvider(CapabilityProvider):
    capability = ActionType.IMAGE_GENERATION

    @abstractmethod
    async def generate(self, prompt: str, options: Dict[str, Any]) -> ImageResult:
        ...


class VideoGenerationProvider(CapabilityProvider):
    capability = ActionType.VIDEO_GENERATION

    @abstractmethod
    async def generate(self, prompt: str, options: Dict[str, Any]) -> VideoResult:
        ...


class DataProcessingProvider(CapabilityProvider):
    """
    Deterministic transforms over already-resolved inputs.

    The prompt is usually empty; inputs arrive in options["params"].
    """
    capability = ActionType.DATA_PROCESSING


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TextResult",
    "ImageResult",
    "VideoResult",
    "normalize_output",
    "result_usage",
    "result_metadata",
    "CapabilityProvider",
    "TextGenerationProvider",
    "ImageGenerationProvider",
    "VideoGenerationProvider",
    "DataProcessingProvider",
]
