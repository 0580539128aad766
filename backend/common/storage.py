from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

from common.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    url: str
    key: str


def build_key(prefix: str, filename: Optional[str]) -> str:
    """`{prefix}{YYYY-MM-DD}/{hex32}.{ext}`; the extension falls back to `bin`."""
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "bin"
    prefix = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
    return f"{prefix}{timezone.now():%Y-%m-%d}/{uuid.uuid4().hex}.{ext}"


def _public_url(base: str, key: str) -> str:
    return f"{base.rstrip('/')}/{key}"


class StorageProvider:
    def upload(self, data: bytes, *, content_type: str, prefix: str, filename: Optional[str] = None) -> StoredObject:
        raise NotImplementedError


# --- Local provider: Django default_storage (filesystem in dev and tests) ---
class LocalStorageProvider(StorageProvider):
    def __init__(self, public_base_url: str = ""):
        self.public_base_url = public_base_url

    def upload(self, data, *, content_type, prefix, filename=None):
        key = default_storage.save(build_key(prefix, filename), ContentFile(data))
        url = _public_url(self.public_base_url, key) if self.public_base_url else default_storage.url(key)
        return StoredObject(url=url, key=key)


# --- HTTP provider: PUT the object to an upload endpoint ---
class HttpStorageProvider(StorageProvider):
    def __init__(self, upload_url: str, public_base_url: str, token: str = "", timeout: float = 10):
        self.upload_url = upload_url
        self.public_base_url = public_base_url or upload_url
        self.token = token
        self.timeout = timeout

    def _headers(self, content_type: str) -> Dict[str, str]:
        h = {"Content-Type": content_type or "application/octet-stream"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def upload(self, data, *, content_type, prefix, filename=None):
        if not self.upload_url:
            raise UpstreamUnavailable("Object storage is not configured")
        key = build_key(prefix, filename)
        try:
            r = requests.put(_public_url(self.upload_url, key), data=data,
                             headers=self._headers(content_type), timeout=self.timeout)
            r.raise_for_status()
        except requests.Timeout as exc:
            logger.warning("Storage upload timed out after %ss (key=%s)", self.timeout, key)
            raise UpstreamUnavailable("Object storage timed out") from exc
        except requests.RequestException as exc:
            logger.warning("Storage upload failed (key=%s): %s", key, exc)
            raise UpstreamUnavailable(f"Object storage upload failed: {exc}") from exc
        return StoredObject(url=_public_url(self.public_base_url, key), key=key)


def get_storage() -> StorageProvider:
    backend = (getattr(settings, "STORAGE_BACKEND", "local") or "local").lower()
    if backend == "http":
        return HttpStorageProvider(
            upload_url=settings.STORAGE_UPLOAD_URL,
            public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
            token=getattr(settings, "STORAGE_AUTH_TOKEN", ""),
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
        )
    return LocalStorageProvider(getattr(settings, "STORAGE_PUBLIC_BASE_URL", ""))
