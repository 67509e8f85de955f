"""Storage backends with switchable implementations.

Stored PDFs are addressed by an object path of the form
``<owner>/<file name>`` and exposed to clients as a public URL.  The
Supabase backend talks to the Storage REST API directly; the local backend
keeps files on disk and is served by the app as static files.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote, unquote, urlparse

import requests

from accessly.exceptions import ConfigurationError, NotFound, ServiceUnavailable

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_MARKER = "/storage/v1/object/public/"


# ---------------------------------------------------------------------------
# Storage interface
# ---------------------------------------------------------------------------


@dataclass
class StoredFile:
    """Small metadata container returned after an upload."""

    path: str
    public_url: str
    size: Optional[int] = None


class StorageBackend(ABC):
    """Minimal set of operations needed by the service."""

    @abstractmethod
    def download(self, path: str) -> bytes:
        ...

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> StoredFile:
        ...

    @abstractmethod
    def public_url(self, path: str) -> str:
        ...

    def path_from_url(self, url: str) -> str:
        """Resolve a public URL back to its object path.

        Falls back to the last two URL segments (``<owner>/<file>``) when the
        URL does not carry this backend's public prefix.
        """
        return object_path_from_url(url)

    def download_url(self, url: str) -> bytes:
        return self.download(self.path_from_url(url))


def object_path_from_url(url: str, bucket: Optional[str] = None) -> str:
    parsed_path = unquote(urlparse(url or "").path)
    if PUBLIC_OBJECT_MARKER in parsed_path:
        remainder = parsed_path.split(PUBLIC_OBJECT_MARKER, 1)[1]
        bucket_name, _, object_path = remainder.partition("/")
        if object_path and (bucket is None or bucket_name == bucket):
            return object_path
    segments = [segment for segment in parsed_path.split("/") if segment]
    if not segments:
        raise NotFound(f"Cannot resolve a storage path from URL {url!r}")
    return "/".join(segments[-2:])


# ---------------------------------------------------------------------------
# Local filesystem backend
# ---------------------------------------------------------------------------


class LocalFileStorage(StorageBackend):
    """Store files inside a local root folder served under ``public_base_url``."""

    def __init__(self, root: Path, public_base_url: str = "/files"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if self.root.resolve() not in resolved.parents:
            raise NotFound(f"Invalid storage path {path!r}")
        return resolved

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFound(f"{path} not found in local storage")
        try:
            return target.read_bytes()
        except OSError as exc:
            logger.error("[Storage] Local read failed for %s: %s", path, exc)
            raise ServiceUnavailable(f"Local storage read failed for {path}: {exc}") from exc

    def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> StoredFile:
        destination = self._resolve(path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            logger.error("[Storage] Local write failed for %s: %s", path, exc)
            raise ServiceUnavailable(f"Local storage write failed for {path}: {exc}") from exc
        return StoredFile(path=path, public_url=self.public_url(path), size=len(data))

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(path)}"


# ---------------------------------------------------------------------------
# Supabase Storage backend
# ---------------------------------------------------------------------------


class SupabaseStorage(StorageBackend):
    """Supabase Storage over its REST API, authenticated with the service key."""

    def __init__(self, url: str, service_key: str, bucket: str = "pdfs", timeout: int = 60):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        headers.update(extra)
        return headers

    def _object_endpoint(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/{self.bucket}/{quote(path)}"

    def download(self, path: str) -> bytes:
        try:
            resp = requests.get(self._object_endpoint(path), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise ServiceUnavailable(f"Storage download failed for {path}: {exc}") from exc
        if resp.status_code in (400, 404):
            raise NotFound(f"{path} not found in bucket {self.bucket}")
        if not resp.ok:
            raise ServiceUnavailable(
                f"Storage download failed for {path}: HTTP {resp.status_code}"
            )
        return resp.content

    def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> StoredFile:
        try:
            resp = requests.post(
                self._object_endpoint(path),
                headers=self._headers(**{"Content-Type": content_type, "x-upsert": "false"}),
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ServiceUnavailable(f"Storage upload failed for {path}: {exc}") from exc
        if not resp.ok:
            raise ServiceUnavailable(
                f"Storage upload failed for {path}: HTTP {resp.status_code} {resp.text[:200]}"
            )
        logger.info("[Storage] Uploaded %s (%d bytes) to bucket %s", path, len(data), self.bucket)
        return StoredFile(path=path, public_url=self.public_url(path), size=len(data))

    def public_url(self, path: str) -> str:
        return f"{self.url}{PUBLIC_OBJECT_MARKER}{self.bucket}/{path}"

    def path_from_url(self, url: str) -> str:
        return object_path_from_url(url, bucket=self.bucket)

    def download_url(self, url: str) -> bytes:
        if url.startswith(self.url):
            return self.download(self.path_from_url(url))
        # Files not hosted in this project's storage are fetched as-is.
        try:
            resp = requests.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceUnavailable(f"Download failed for {url}: {exc}") from exc
        return resp.content


# ---------------------------------------------------------------------------
# Switcher / configuration helpers
# ---------------------------------------------------------------------------


@dataclass
class StorageConfig:
    driver: str = "supabase"
    supabase_url: Optional[str] = None
    service_key: Optional[str] = None
    bucket: str = "pdfs"
    local_root: Path = Path("uploads")
    public_base_url: str = "/files"
    timeout: int = 60

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            driver=os.getenv("STORAGE_DRIVER", "supabase"),
            supabase_url=os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL"),
            service_key=os.getenv("SUPABASE_SERVICE_KEY"),
            bucket=os.getenv("SUPABASE_BUCKET_NAME", "pdfs"),
            local_root=Path(os.getenv("LOCAL_UPLOAD_DIR", "uploads")),
            public_base_url=os.getenv("LOCAL_PUBLIC_BASE_URL", "/files"),
        )


_storage_backend: Optional[StorageBackend] = None
_storage_lock = threading.Lock()


def configure_storage(config: Optional[StorageConfig] = None) -> StorageBackend:
    """Instantiate and cache the desired backend implementation."""
    global _storage_backend
    config = config or StorageConfig.from_env()
    driver = config.driver.lower()

    if driver == "local":
        backend: StorageBackend = LocalFileStorage(config.local_root, config.public_base_url)
    elif driver == "supabase":
        if not config.supabase_url or not config.service_key:
            raise ConfigurationError("Supabase storage requires SUPABASE_URL and SUPABASE_SERVICE_KEY")
        backend = SupabaseStorage(
            config.supabase_url, config.service_key, config.bucket, timeout=config.timeout
        )
    else:
        raise ConfigurationError(f"Unsupported storage driver '{config.driver}'")

    with _storage_lock:
        _storage_backend = backend
    return backend


def get_storage() -> StorageBackend:
    """Return the configured storage backend (initialising if needed)."""
    if _storage_backend is None:
        configure_storage()
    return _storage_backend


def reset_storage(backend: Optional[StorageBackend] = None) -> None:
    global _storage_backend
    with _storage_lock:
        _storage_backend = backend
