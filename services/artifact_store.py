# ============================================================================
# ARTIFACT STORE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Service - Persist generated media
# PURPOSE: Store image/video bytes and hand back a storage reference
# CREATED: 19 OCT 2026
# ============================================================================
"""
Artifact Store

DataProcessing nodes persist generated media here and attach the returned
URI to their merged records.

Implementations:
- BlobArtifactStore: Azure Blob Storage container (https:// blob URLs)
- LocalArtifactStore: files under a base directory (file:// URIs), single-host dev
- InMemoryArtifactStore: dict-backed (memory:// URIs), for tests and dev
"""

import asyncio
import hashlib
import logging
import mimetypes
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, ContentSettings, generate_blob_sas

from core.config import ArtifactDefaults

logger = logging.getLogger(__name__)


def _artifact_name(data: bytes, prefix: str, content_type: Optional[str]) -> str:
    digest = hashlib.sha256(data).hexdigest()[:16]
    ext = mimetypes.guess_extension(content_type or "") or ".bin"
    return f"{prefix}/{digest}-{uuid.uuid4().hex[:8]}{ext}"


class ArtifactStore(ABC):
    """Where generated bytes go."""

    @abstractmethod
    async def save(
        self,
        data: bytes,
        prefix: str = "artifacts",
        content_type: Optional[str] = None,
    ) -> str:
        """Persist bytes and return a URI."""

    @abstractmethod
    async def load(self, uri: str) -> bytes:
        """Read back bytes by URI. Raises KeyError when missing."""


class LocalArtifactStore(ArtifactStore):
    """Filesystem-backed store."""

    SCHEME = "file://"

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    async def save(self, data: bytes, prefix: str = "artifacts", content_type: Optional[str] = None) -> str:
        path = self.base_dir / _artifact_name(data, prefix, content_type)
        await asyncio.to_thread(self._write, path, data)
        logger.debug(f"Saved artifact {path} ({len(data)} bytes)")
        return f"{self.SCHEME}{path.resolve()}"

    async def load(self, uri: str) -> bytes:
        if not uri.startswith(self.SCHEME):
            raise KeyError(f"Not a local artifact: {uri}")
        path = Path(uri[len(self.SCHEME):])
        if not path.exists():
            raise KeyError(f"Artifact not found: {uri}")
        return await asyncio.to_thread(path.read_bytes)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class InMemoryArtifactStore(ArtifactStore):
    """Dict-backed store."""

    SCHEME = "memory://"

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, Optional[str]]] = {}

    async def save(self, data: bytes, prefix: str = "artifacts", content_type: Optional[str] = None) -> str:
        uri = f"{self.SCHEME}{_artifact_name(data, prefix, content_type)}"
        self._blobs[uri] = (bytes(data), content_type)
        return uri

    async def load(self, uri: str) -> bytes:
        if uri not in self._blobs:
            raise KeyError(f"Artifact not found: {uri}")
        return self._blobs[uri][0]

    def __len__(self) -> int:
        return len(self._blobs)


class BlobArtifactStore(ArtifactStore):
    """
    Azure Blob Storage backed store.

    Artifacts land in a single container under <prefix>/<digest>-<id><ext> with
    their content type set. save() returns the blob URL, or a read-only SAS
    URL when sas_hours is positive, so any instance (or a poller) can fetch
    the artifact back.

    The SDK client is synchronous; calls run in a worker thread.

    Usage:
        store = BlobArtifactStore.from_defaults(get_defaults().artifacts)
        uri = await store.save(png_bytes, prefix="exec_1/merge", content_type="image/png")
    """

    def __init__(
        self,
        container: str,
        service_client: Optional[BlobServiceClient] = None,
        account_name: Optional[str] = None,
        connection_string: Optional[str] = None,
        sas_hours: int = 0,
    ):
        if service_client is None:
            if connection_string:
                service_client = BlobServiceClient.from_connection_string(connection_string)
            elif account_name:
                service_client = BlobServiceClient(
                    account_url=f"https://{account_name}.blob.core.windows.net",
                    credential=DefaultAzureCredential(),
                )
            else:
                raise ValueError(
                    "BlobArtifactStore requires AZURE_STORAGE_CONNECTION_STRING "
                    "or AZURE_STORAGE_ACCOUNT"
                )

        self.container = container
        self.sas_hours = sas_hours
        self._service = service_client
        self._container_client = service_client.get_container_client(container)
        logger.info(f"BlobArtifactStore initialized for container: {container}")

    @classmethod
    def from_defaults(cls, defaults: ArtifactDefaults) -> "BlobArtifactStore":
        return cls(
            container=defaults.container,
            account_name=defaults.account_name,
            connection_string=defaults.connection_string,
            sas_hours=defaults.sas_hours,
        )

    async def save(self, data: bytes, prefix: str = "artifacts", content_type: Optional[str] = None) -> str:
        blob_path = _artifact_name(data, prefix, content_type)
        return await asyncio.to_thread(self._upload, blob_path, data, content_type)

    async def load(self, uri: str) -> bytes:
        blob_path = self._blob_path(uri)
        blob_client = self._container_client.get_blob_client(blob_path)
        try:
            downloader = await asyncio.to_thread(blob_client.download_blob)
            return await asyncio.to_thread(downloader.readall)
        except ResourceNotFoundError:
            raise KeyError(f"Artifact not found: {uri}")

    # ========================================================================
    # BLOB OPERATIONS
    # ========================================================================

    def _upload(self, blob_path: str, data: bytes, content_type: Optional[str]) -> str:
        blob_client = self._container_client.get_blob_client(blob_path)
        start_time = time.time()

        blob_client.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
            length=len(data),
        )

        duration = time.time() - start_time
        logger.debug(
            f"Uploaded artifact {self.container}/{blob_path} "
            f"({len(data)} bytes in {duration:.2f}s)"
        )

        if self.sas_hours > 0:
            return self._sas_url(blob_client, blob_path)
        return blob_client.url

    def _sas_url(self, blob_client, blob_path: str) -> str:
        """Read-only SAS: account key when available, else user delegation key."""
        start_time = datetime.now(timezone.utc)
        expiry_time = start_time + timedelta(hours=self.sas_hours)

        signing = {}
        account_key = getattr(self._service.credential, "account_key", None)
        if account_key:
            signing["account_key"] = account_key
        else:
            signing["user_delegation_key"] = self._service.get_user_delegation_key(
                key_start_time=start_time,
                key_expiry_time=expiry_time,
            )

        sas_token = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container,
            blob_name=blob_path,
            permission=BlobSasPermissions(read=True),
            expiry=expiry_time,
            start=start_time,
            **signing,
        )
        return f"{blob_client.url}?{sas_token}"

    def _blob_path(self, uri: str) -> str:
        base = self._container_client.url.rstrip("/") + "/"
        path = uri.split("?", 1)[0]
        if not path.startswith(base):
            raise KeyError(f"Not an artifact of container {self.container}: {uri}")
        return unquote(path[len(base):])


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "InMemoryArtifactStore",
    "BlobArtifactStore",
]
