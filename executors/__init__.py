# ============================================================================
# EXECUTORS PACKAGE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Package - Capability providers
# PURPOSE: Provider interfaces, registry and built-in providers
# CREATED: 19 OCT 2026
# ============================================================================
"""
Executors Package

Providers that perform node actions, grouped by capability.
"""

from executors.base import (
    TextResult,
    ImageResult,
    VideoResult,
    normalize_output,
    result_usage,
    result_metadata,
    CapabilityProvider,
    TextGenerationProvider,
    ImageGenerationProvider,
    VideoGenerationProvider,
    DataProcessingProvider,
)
from executors.registry import ProviderRegistry
from executors.data_processing import MergeProcessor
from executors.http_provider import HttpCapabilityProvider
from executors.demo import (
    EchoTextProvider,
    PlaceholderImageProvider,
    PlaceholderVideoProvider,
    build_default_registry,
)

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
    "ProviderRegistry",
    "MergeProcessor",
    "HttpCapabilityProvider",
    "EchoTextProvider",
    "PlaceholderImageProvider",
    "PlaceholderVideoProvider",
    "build_default_registry",
]
