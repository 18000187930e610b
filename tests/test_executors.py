# ============================================================================
# EXECUTOR TESTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tests - Provider registry, merge processor, demo and HTTP providers
# PURPOSE: Verify capability providers behave as the dispatcher expects
# CREATED: 19 OCT 2026
# ============================================================================
"""
Executor Tests

Covers:
1. ProviderRegistry: defaults, lookup, duplicates
2. normalize_output for each result type
3. MergeProcessor zip: positional merge, count mismatch, optional fields,
   persistence with per-field content types
4. MergeProcessor upload
5. Demo providers and build_default_registry (env-configured HTTP providers)
6. HttpCapabilityProvider over httpx.MockTransport

Run with:
    pytest tests/test_executors.py -v
"""

import asyncio
import base64
import json
import pytest
from unittest.mock import AsyncMock

import httpx

from core.contracts import ActionType
from core.errors import CapabilityError, DuplicateProviderError, ProviderNotFoundError
from executors import (
    EchoTextProvider,
    HttpCapabilityProvider,
    ImageResult,
    MergeProcessor,
    PlaceholderImageProvider,
    PlaceholderVideoProvider,
    ProviderRegistry,
    TextResult,
    VideoResult,
    build_default_registry,
    normalize_output,
    result_metadata,
    result_usage,
)
from services.artifact_store import InMemoryArtifactStore


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store():
    return InMemoryArtifactStore()


@pytest.fixture
def merger(store):
    return MergeProcessor(artifact_store=store)


@pytest.fixture
def personas():
    return [{"name": "Ana"}, {"name": "Ben"}]


def _http_provider(capability, handler, **kwargs):
    return HttpCapabilityProvider(
        capability=capability,
        provider_id="gw",
        endpoint="https://gateway.local/generate",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# ============================================================================
# REGISTRY
# ============================================================================

class TestProviderRegistry:

    def test_first_registered_becomes_default(self):
        registry = ProviderRegistry()
        registry.register(EchoTextProvider("a"))
        registry.register(EchoTextProvider("b"))

        assert registry.default_for(ActionType.TEXT_GENERATION) == "a"
        assert registry.get(ActionType.TEXT_GENERATION).provider_id == "a"
        assert registry.get(ActionType.TEXT_GENERATION, "b").provider_id == "b"

    def test_explicit_default_overrides(self):
        registry = ProviderRegistry()
        registry.register(EchoTextProvider("a"))
        registry.register(EchoTextProvider("b"), default=True)

        assert registry.get(ActionType.TEXT_GENERATION).provider_id == "b"

    def test_duplicate_rejected(self):
        registry = ProviderRegistry()
        registry.register(EchoTextProvider("a"))
        with pytest.raises(DuplicateProviderError):
            registry.register(EchoTextProvider("a"))

    def test_same_id_different_capability_allowed(self):
        registry = ProviderRegistry()
        registry.register(PlaceholderImageProvider("placeholder"))
        registry.register(PlaceholderVideoProvider("placeholder"))
        assert len(registry) == 2

    def test_get_or_raise(self):
        registry = ProviderRegistry()
        with pytest.raises(ProviderNotFoundError):
            registry.get_or_raise(ActionType.VIDEO_GENERATION)

    def test_list_providers_marks_default(self):
        registry = ProviderRegistry()
        registry.register(EchoTextProvider("a"))
        registry.register(EchoTextProvider("b"))

        listing = {p["provider_id"]: p for p in registry.list_providers()}
        assert listing["a"]["is_default"] is True
        assert listing["b"]["is_default"] is False
        assert listing["a"]["capability"] == "text_generation"


# ============================================================================
# NORMALIZATION
# ============================================================================

class TestNormalizeOutput:

    def test_text(self):
        assert normalize_output(TextResult(text="hi")) == "hi"

    def test_image_prefers_bytes(self):
        assert normalize_output(ImageResult(image_bytes=b"png", image_url="https://x")) == b"png"
        assert normalize_output(ImageResult(image_url="https://x")) == "https://x"

    def test_image_needs_payload(self):
        with pytest.raises(ValueError):
            ImageResult()

    def test_video_flattens_extra(self):
        out = normalize_output(VideoResult(video_url="https://v", duration_seconds=4.0, extra={"job": "j1"}))
        assert out == {"video_url": "https://v", "duration_seconds": 4.0, "resolution": None, "job": "j1"}

    def test_passthrough(self):
        assert normalize_output({"already": "plain"}) == {"already": "plain"}

    def test_usage_and_metadata_helpers(self):
        assert result_usage(TextResult(text="hi", usage={"tokens": 3})) == {"tokens": 3}
        assert result_usage(VideoResult(video_url="https://v", usage={"seconds": 5})) == {"seconds": 5}
        assert result_usage("plain") == {}
        assert result_metadata(ImageResult(image_bytes=b"abc", image_url="https://x", mime_type="image/webp")) == {
            "mime_type": "image/webp",
            "size_bytes": 3,
            "image_url": "https://x",
        }
        assert result_metadata(TextResult(text="hi")) == {}


# ============================================================================
# MERGE PROCESSOR
# ============================================================================

class TestMergeZip:

    def test_zip_by_position(self, merger, personas):
        options = {"params": {"personas": personas, "portrait": ["p0", "p1"], "video": ["v0", "v1"]}}

        merged = asyncio.run(merger.generate("", options))

        assert merged == [
            {"name": "Ana", "portrait": "p0", "video": "v0"},
            {"name": "Ben", "portrait": "p1", "video": "v1"},
        ]

    def test_explicit_base_and_fields(self, merger, personas):
        options = {
            "base": "people",
            "fields": {"image": "pics"},
            "params": {"pics": ["a.png", "b.png"], "people": personas, "ignored": [1]},
        }

        merged = asyncio.run(merger.generate("", options))

        assert merged == [{"name": "Ana", "image": "a.png"}, {"name": "Ben", "image": "b.png"}]

    def test_count_mismatch_fails(self, merger, personas):
        options = {"params": {"personas": personas, "portrait": ["only-one"]}}

        with pytest.raises(CapabilityError, match="counts differ"):
            asyncio.run(merger.generate("", options))

    def test_base_records_must_be_objects(self, merger):
        with pytest.raises(CapabilityError, match="expected an object"):
            asyncio.run(merger.generate("", {"params": {"names": ["Ana"], "portrait": ["p"]}}))

    def test_inputs_not_mutated(self, merger, personas):
        asyncio.run(merger.generate("", {"params": {"personas": personas, "portrait": ["p0", "p1"]}}))
        assert personas == [{"name": "Ana"}, {"name": "Ben"}]

    def test_persist_bytes(self, merger, store, personas):
        options = {
            "persist": True,
            "storage_prefix": "personas",
            "content_type": "image/png",
            "params": {"personas": personas, "portrait": [b"\x89PNG-a", "https://already.hosted/b.png"]},
        }

        merged = asyncio.run(merger.generate("", options))

        ref = merged[0]["portrait_ref"]
        assert ref.startswith("memory://personas/")
        assert asyncio.run(store.load(ref)) == b"\x89PNG-a"
        assert "portrait_ref" not in merged[1]
        assert len(store) == 1

    def test_optional_field_empty_attaches_none(self, merger, personas):
        options = {
            "fields": {"portrait": "portrait", "video": "videos"},
            "optional": ["video"],
            "params": {"personas": personas, "portrait": ["p0", "p1"], "videos": []},
        }

        merged = asyncio.run(merger.generate("", options))

        assert merged == [
            {"name": "Ana", "portrait": "p0", "video": None},
            {"name": "Ben", "portrait": "p1", "video": None},
        ]

    def test_optional_field_still_needs_matching_count(self, merger, personas):
        options = {
            "optional": ["video"],
            "params": {"personas": personas, "video": ["v0"]},
        }

        with pytest.raises(CapabilityError, match="counts differ"):
            asyncio.run(merger.generate("", options))

    def test_persist_content_type_per_field(self, merger, store, personas):
        store.save = AsyncMock(side_effect=["memory://p/a.png", "memory://p/a.mp4"])
        options = {
            "persist": True,
            "content_type": "image/png",
            "content_types": {"video": "video/mp4"},
            "params": {"personas": personas[:1], "portrait": [b"img"], "video": [b"clip"]},
        }

        merged = asyncio.run(merger.generate("", options))

        assert merged[0]["video_ref"] == "memory://p/a.mp4"
        assert [c.args[2] for c in store.save.call_args_list] == ["image/png", "video/mp4"]

    def test_persist_without_store_fails(self, personas):
        merger = MergeProcessor()
        options = {"persist": True, "params": {"personas": personas, "portrait": [b"a", b"b"]}}

        with pytest.raises(CapabilityError, match="artifact store"):
            asyncio.run(merger.generate("", options))

    def test_unknown_operation(self, merger):
        with pytest.raises(CapabilityError, match="Unknown"):
            asyncio.run(merger.generate("", {"operation": "explode", "params": {"x": []}}))


class TestMergeUpload:

    def test_upload_list(self, merger, store):
        options = {"operation": "upload", "params": {"images": [b"one", "https://hosted/two.png"]}}

        uris = asyncio.run(merger.generate("", options))

        assert uris[0].startswith("memory://")
        assert uris[1] == "https://hosted/two.png"
        assert asyncio.run(store.load(uris[0])) == b"one"

    def test_upload_single(self, merger):
        uri = asyncio.run(merger.generate("", {"operation": "upload", "params": {"img": b"x"}}))
        assert uri.startswith("memory://artifacts/")


# ============================================================================
# DEMO PROVIDERS
# ============================================================================

class TestDemoProviders:

    def test_echo_plain(self):
        result = asyncio.run(EchoTextProvider().generate("hello", {}))
        assert result.text == "hello"

    def test_echo_json_records(self):
        result = asyncio.run(EchoTextProvider().generate("p", {"output_format": "json", "count": 3}))
        assert [r["name"] for r in json.loads(result.text)] == ["Item 1", "Item 2", "Item 3"]

    def test_echo_json_item(self):
        result = asyncio.run(EchoTextProvider().generate("p", {"output_format": "json", "item": "x", "index": 4}))
        assert json.loads(result.text) == {"index": 4, "item": "x", "prompt": "p"}

    def test_placeholder_image_modes(self):
        as_bytes = asyncio.run(PlaceholderImageProvider().generate("cat", {}))
        as_url = asyncio.run(PlaceholderImageProvider(return_url=True).generate("cat", {}))

        assert as_bytes.image_bytes.startswith(b"\x89PNG")
        assert as_url.image_url.startswith("https://placeholder.local/images/")

    def test_default_registry(self, monkeypatch):
        for cap in ("TEXT_GENERATION", "IMAGE_GENERATION", "VIDEO_GENERATION"):
            monkeypatch.delenv(f"PROVIDER_{cap}_URL", raising=False)

        registry = build_default_registry()

        assert registry.default_for(ActionType.TEXT_GENERATION) == "echo"
        assert registry.default_for(ActionType.IMAGE_GENERATION) == "placeholder"
        assert registry.default_for(ActionType.DATA_PROCESSING) == "merge"

    def test_env_http_provider_becomes_default(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_TEXT_GENERATION_URL", "https://llm.local/v1/text")
        monkeypatch.setenv("PROVIDER_TEXT_GENERATION_ID", "llm")
        monkeypatch.delenv("PROVIDER_IMAGE_GENERATION_URL", raising=False)
        monkeypatch.delenv("PROVIDER_VIDEO_GENERATION_URL", raising=False)

        registry = build_default_registry()

        provider = registry.get(ActionType.TEXT_GENERATION)
        assert isinstance(provider, HttpCapabilityProvider)
        assert provider.provider_id == "llm"
        assert registry.get(ActionType.TEXT_GENERATION, "echo") is not None


# ============================================================================
# HTTP PROVIDER
# ============================================================================

class TestHttpCapabilityProvider:

    def test_text_request_and_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"text": "generated", "usage": {"tokens": 7}})

        provider = _http_provider(ActionType.TEXT_GENERATION, handler, api_key="secret")
        result = asyncio.run(provider.generate("Write", {"temperature": 0.3, "params": {"img": b"\x00\x01"}}))

        assert result == TextResult(text="generated", usage={"tokens": 7})
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["prompt"] == "Write"
        assert seen["body"]["options"]["params"]["img"] == base64.b64encode(b"\x00\x01").decode()

    def test_image_base64(self):
        payload = base64.b64encode(b"png-bytes").decode()
        provider = _http_provider(
            ActionType.IMAGE_GENERATION,
            lambda request: httpx.Response(200, json={"image_base64": payload}),
        )

        result = asyncio.run(provider.generate("cat", {}))

        assert result.image_bytes == b"png-bytes"

    def test_image_url(self):
        provider = _http_provider(
            ActionType.IMAGE_GENERATION,
            lambda request: httpx.Response(200, json={"image_url": "https://cdn/cat.png"}),
        )
        assert asyncio.run(provider.generate("cat", {})).image_url == "https://cdn/cat.png"

    def test_video(self):
        provider = _http_provider(
            ActionType.VIDEO_GENERATION,
            lambda request: httpx.Response(200, json={"video_url": "https://cdn/v.mp4", "duration_seconds": 5, "job_id": "j"}),
        )

        result = asyncio.run(provider.generate("clip", {}))

        assert result.video_url == "https://cdn/v.mp4"
        assert result.extra == {"job_id": "j"}

    def test_usage_carried_for_media(self):
        payload = base64.b64encode(b"jpg").decode()
        image = _http_provider(
            ActionType.IMAGE_GENERATION,
            lambda request: httpx.Response(
                200, json={"image_base64": payload, "mime_type": "image/jpeg", "usage": {"credits": 4}}
            ),
        )
        video = _http_provider(
            ActionType.VIDEO_GENERATION,
            lambda request: httpx.Response(200, json={"video_url": "https://cdn/v.mp4", "usage": {"seconds": 5}}),
        )

        image_result = asyncio.run(image.generate("cat", {}))
        video_result = asyncio.run(video.generate("clip", {}))

        assert image_result.usage == {"credits": 4}
        assert image_result.mime_type == "image/jpeg"
        assert video_result.usage == {"seconds": 5}
        assert video_result.extra == {}

    def test_http_error_status(self):
        provider = _http_provider(ActionType.TEXT_GENERATION, lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(CapabilityError, match="HTTP 503"):
            asyncio.run(provider.generate("x", {}))

    def test_non_json_body(self):
        provider = _http_provider(ActionType.TEXT_GENERATION, lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(CapabilityError, match="non-JSON"):
            asyncio.run(provider.generate("x", {}))

    def test_missing_field(self):
        provider = _http_provider(ActionType.TEXT_GENERATION, lambda request: httpx.Response(200, json={"other": 1}))
        with pytest.raises(CapabilityError, match="no 'text'"):
            asyncio.run(provider.generate("x", {}))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = _http_provider(ActionType.TEXT_GENERATION, handler)
        with pytest.raises(CapabilityError, match="request failed"):
            asyncio.run(provider.generate("x", {}))

    def test_data_processing_not_allowed(self):
        with pytest.raises(ValueError):
            HttpCapabilityProvider(ActionType.DATA_PROCESSING, "x", "https://x")

    def test_from_env_unset(self, monkeypatch):
        monkeypatch.delenv("PROVIDER_VIDEO_GENERATION_URL", raising=False)
        assert HttpCapabilityProvider.from_env(ActionType.VIDEO_GENERATION) is None
