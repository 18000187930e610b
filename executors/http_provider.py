# ============================================================================
# HTTP CAPABILITY PROVIDER
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Executor - Generic provider behind an HTTP endpoint
# PURPOSE: Call a model gateway over HTTP for text/image/video generation
# CREATED: 19 OCT 2026
# ============================================================================
"""
HTTP Capability Provider

Posts {"prompt", "options"} as JSON to a configured endpoint and maps the
JSON response onto the capability's result type:

    text:  {"text": "..."}
    image: {"image_url": "..."} or {"image_base64": "..."}
    video: {"video_url": "...", "duration_seconds": 5, ...}

Non-2xx responses, transport errors and malformed bodies raise
CapabilityError, which the dispatcher handles per node error policy.
Timeouts are enforced by the dispatcher; the client timeout only bounds
individual socket operations.
"""

import base64
import logging
import os
from typing import Any, Dict, Optional

import httpx

from core.contracts import ActionType
from core.errors import CapabilityError
from executors.base import (
    CapabilityProvider,
    ImageResult,
    TextResult,
    VideoResult,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=300.0, write=30.0, pool=30.0)


class HttpCapabilityProvider(CapabilityProvider):
    """One capability served by one HTTP endpoint."""

    def __init__(
        self,
        capability: ActionType,
        provider_id: str,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if capability == ActionType.DATA_PROCESSING:
            raise ValueError("Data processing runs in-process, not over HTTP")
        super().__init__(provider_id, description=f"HTTP {capability.value} at {endpoint}")
        # Instance attribute shadows the ClassVar so one class serves every capability
        self.capability = capability
        self.endpoint = endpoint
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._timeout = timeout or DEFAULT_TIMEOUT
        self._transport = transport

    @classmethod
    def from_env(cls, capability: ActionType) -> Optional["HttpCapabilityProvider"]:
        """
        Build from PROVIDER_<CAPABILITY>_URL / _KEY / _ID, or None when unset.

        e.g. PROVIDER_TEXT_GENERATION_URL=https://gateway/v1/text
        """
        prefix = f"PROVIDER_{capability.value.upper()}"
        endpoint = os.environ.get(f"{prefix}_URL")
        if not endpoint:
            return None
        return cls(
            capability=capability,
            provider_id=os.environ.get(f"{prefix}_ID", "http"),
            endpoint=endpoint,
            api_key=os.environ.get(f"{prefix}_KEY"),
        )

    async def generate(self, prompt: str, options: Dict[str, Any]) -> Any:
        body = {"prompt": prompt, "options": _json_safe(options)}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self.endpoint, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise CapabilityError(f"{self.provider_id} request failed: {e}") from e

        if resp.status_code >= 400:
            raise CapabilityError(
                f"{self.provider_id} returned HTTP {resp.status_code}: {resp.text[:500]}"
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise CapabilityError(f"{self.provider_id} returned a non-JSON body") from e

        return self._to_result(payload)

    def _to_result(self, payload: Dict[str, Any]) -> Any:
        if not isinstance(payload, dict):
            raise CapabilityError(f"{self.provider_id} returned {type(payload).__name__}, expected an object")
        usage = payload.get("usage") or {}

        if self.capability == ActionType.TEXT_GENERATION:
            if "text" not in payload:
                raise CapabilityError(f"{self.provider_id} response has no 'text'")
            return TextResult(text=payload["text"], usage=usage)

        if self.capability == ActionType.IMAGE_GENERATION:
            if payload.get("image_base64"):
                return ImageResult(
                    image_bytes=base64.b64decode(payload["image_base64"]),
                    image_url=payload.get("image_url"),
                    mime_type=payload.get("mime_type", "image/png"),
                    usage=usage,
                )
            if payload.get("image_url"):
                return ImageResult(
                    image_url=payload["image_url"],
                    mime_type=payload.get("mime_type", "image/png"),
                    usage=usage,
                )
            raise CapabilityError(f"{self.provider_id} response has no image")

        if not payload.get("video_url"):
            raise CapabilityError(f"{self.provider_id} response has no 'video_url'")
        extra = {
            k: v for k, v in payload.items()
            if k not in ("video_url", "duration_seconds", "resolution", "usage")
        }
        return VideoResult(
            video_url=payload["video_url"],
            duration_seconds=payload.get("duration_seconds"),
            resolution=payload.get("resolution"),
            extra=extra,
            usage=usage,
        )


def _json_safe(value: Any) -> Any:
    """Replace bytes with base64 text so options can travel as JSON."""
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["HttpCapabilityProvider"]
