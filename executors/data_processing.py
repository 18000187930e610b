# ============================================================================
# DATA PROCESSING EXECUTOR
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Deterministic merge of upstream outputs
# PURPOSE: Zip generated records with generated media; persist artifacts
# CREATED: 19 OCT 2026
# ============================================================================
"""
Data Processing Executor

The one executor with business logic of its own. It never calls a model;
it combines outputs that upstream nodes already produced.

Operations (node config "operation"):

zip (default)
    config:
        base:    param holding the list of records (default: first param)
        fields:  {attach_key: param} lists to attach by position
                 (default: every other param, attached under its own name)
        optional: attach keys whose input may be an empty list (a skipped
                 upstream node); each record then gets None for that key
        persist: store bytes values in the ArtifactStore and add
                 "<attach_key>_ref" with the returned URI
        content_types: {attach_key: mime type} for persisted bytes
                 (default: content_type)
    Every attached list must be exactly as long as the base list. A
    mismatch fails the node; nothing is truncated or padded, except that
    an optional field may be empty.

upload
    config:
        source:  param holding bytes or a list of bytes (default: first param)
    Returns the URI (or list of URIs). Non-bytes entries (already-hosted
    URLs) pass through unchanged.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from core.errors import CapabilityError
from executors.base import DataProcessingProvider
from services.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)

OPERATION_ZIP = "zip"
OPERATION_UPLOAD = "upload"


class MergeProcessor(DataProcessingProvider):
    """Zip / upload operations over resolved node inputs."""

    def __init__(
        self,
        provider_id: str = "merge",
        artifact_store: Optional[ArtifactStore] = None,
    ):
        super().__init__(provider_id, description="Positional merge and artifact upload")
        self.artifact_store = artifact_store

    async def generate(self, prompt: str, options: Dict[str, Any]) -> Any:
        params = options.get("params") or {}
        operation = options.get("operation", OPERATION_ZIP)

        if operation == OPERATION_ZIP:
            return await self.zip_records(params, options)
        if operation == OPERATION_UPLOAD:
            return await self.upload(params, options)

        raise CapabilityError(f"Unknown data processing operation: '{operation}'")

    # =========================================================================
    # ZIP
    # =========================================================================

    async def zip_records(self, params: Dict[str, Any], options: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not params:
            raise CapabilityError("zip needs at least one input")

        base_param = options.get("base") or next(iter(params))
        if base_param not in params:
            raise CapabilityError(f"zip base '{base_param}' is not among the node inputs")

        fields: Dict[str, str] = options.get("fields") or {
            name: name for name in params if name != base_param
        }

        records = _as_list(params[base_param], base_param)
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise CapabilityError(
                    f"zip base '{base_param}' item {index} is {type(record).__name__}, expected an object"
                )

        merged = [dict(record) for record in records]
        optional = set(options.get("optional") or [])

        for attach_key, param in fields.items():
            if param not in params:
                raise CapabilityError(f"zip field '{attach_key}' reads missing input '{param}'")
            values = _as_list(params[param], param)
            if not values and attach_key in optional:
                values = [None] * len(records)
            if len(values) != len(records):
                raise CapabilityError(
                    f"Cannot zip '{param}' ({len(values)} items) with "
                    f"'{base_param}' ({len(records)} items): counts differ"
                )
            for record, value in zip(merged, values):
                record[attach_key] = value

        if options.get("persist"):
            await self._persist_attachments(merged, list(fields), options)

        logger.debug(f"Zipped {len(merged)} records with fields {list(fields)}")
        return merged

    async def _persist_attachments(
        self,
        records: List[Dict[str, Any]],
        attach_keys: List[str],
        options: Dict[str, Any],
    ) -> None:
        store = self._require_store()
        prefix = options.get("storage_prefix", "artifacts")
        content_types = options.get("content_types") or {}

        for record in records:
            for key in attach_keys:
                value = record.get(key)
                if isinstance(value, (bytes, bytearray)):
                    content_type = content_types.get(key, options.get("content_type"))
                    record[f"{key}_ref"] = await store.save(bytes(value), prefix, content_type)

    # =========================================================================
    # UPLOAD
    # =========================================================================

    async def upload(self, params: Dict[str, Any], options: Dict[str, Any]) -> Any:
        if not params:
            raise CapabilityError("upload needs an input")

        source = options.get("source") or next(iter(params))
        if source not in params:
            raise CapabilityError(f"upload source '{source}' is not among the node inputs")

        store = self._require_store()
        prefix = options.get("storage_prefix", "artifacts")
        content_type = options.get("content_type")
        value = params[source]

        if isinstance(value, (list, tuple)):
            uris = []
            for item in value:
                if isinstance(item, (bytes, bytearray)):
                    uris.append(await store.save(bytes(item), prefix, content_type))
                else:
                    uris.append(item)
            return uris

        if isinstance(value, (bytes, bytearray)):
            return await store.save(bytes(value), prefix, content_type)
        return value

    def _require_store(self) -> ArtifactStore:
        if self.artifact_store is None:
            raise CapabilityError("No artifact store configured for persisting artifacts")
        return self.artifact_store


def _as_list(value: Any, name: str) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    raise CapabilityError(f"Input '{name}' is {type(value).__name__}, expected a list")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["MergeProcessor", "OPERATION_ZIP", "OPERATION_UPLOAD"]
