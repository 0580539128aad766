import re
from unittest import mock

import pytest
import requests
from django.core.files.storage import default_storage

from common.exceptions import UpstreamUnavailable
from common.storage import HttpStorageProvider, LocalStorageProvider, build_key, get_storage

KEY_RE = r"\d{4}-\d{2}-\d{2}/[0-9a-f]{32}"


def test_build_key_layout():
    assert re.fullmatch(rf"uploads/jobs/photo/{KEY_RE}\.jpg", build_key("uploads/jobs/photo/", "Site.JPG"))
    assert re.fullmatch(rf"uploads/attendance/{KEY_RE}\.bin", build_key("uploads/attendance", None))


def test_local_provider_writes_default_storage():
    stored = LocalStorageProvider().upload(b"hello", content_type="text/plain", prefix="uploads/test/",
                                           filename="note.txt")

    assert stored.key.startswith("uploads/test/")
    assert default_storage.exists(stored.key)
    assert stored.url == default_storage.url(stored.key)


def test_local_provider_uses_public_base_url():
    stored = LocalStorageProvider("https://cdn.example.test/").upload(
        b"x", content_type="image/png", prefix="p/", filename="a.png")
    assert stored.url == f"https://cdn.example.test/{stored.key}"


def test_http_provider_puts_with_timeout():
    provider = HttpStorageProvider("https://store.example.test/bucket", "https://cdn.example.test", token="t0k",
                                   timeout=3)
    with mock.patch("common.storage.requests.put") as put:
        put.return_value.raise_for_status.return_value = None
        stored = provider.upload(b"data", content_type="image/png", prefix="uploads/", filename="a.png")

    url, = put.call_args.args
    assert url == f"https://store.example.test/bucket/{stored.key}"
    assert put.call_args.kwargs["timeout"] == 3
    assert put.call_args.kwargs["headers"]["Authorization"] == "Bearer t0k"
    assert stored.url == f"https://cdn.example.test/{stored.key}"


def test_http_provider_timeout_is_upstream_error():
    provider = HttpStorageProvider("https://store.example.test", "", timeout=1)
    with mock.patch("common.storage.requests.put", side_effect=requests.Timeout("slow")):
        with pytest.raises(UpstreamUnavailable) as exc:
            provider.upload(b"data", content_type="image/png", prefix="uploads/", filename="a.png")
    assert exc.value.message == "Object storage timed out"
    assert exc.value.status_code == 500


def test_http_provider_connection_error_is_upstream_error():
    provider = HttpStorageProvider("https://store.example.test", "")
    with mock.patch("common.storage.requests.put", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(UpstreamUnavailable):
            provider.upload(b"data", content_type="image/png", prefix="uploads/")


def test_http_provider_requires_configuration():
    with pytest.raises(UpstreamUnavailable) as exc:
        HttpStorageProvider("", "").upload(b"x", content_type="image/png", prefix="uploads/")
    assert exc.value.message == "Object storage is not configured"


def test_get_storage_follows_settings(settings):
    settings.STORAGE_BACKEND = "http"
    settings.STORAGE_UPLOAD_URL = "https://store.example.test"
    settings.STORAGE_TIMEOUT_SECONDS = 7
    provider = get_storage()
    assert isinstance(provider, HttpStorageProvider)
    assert provider.timeout == 7

    settings.STORAGE_BACKEND = "local"
    assert isinstance(get_storage(), LocalStorageProvider)
