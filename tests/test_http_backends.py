"""Tests for the requests-based token provider, blob store and asset registry"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, Mock
from urllib.parse import unquote

import pytest
import requests

from assetpub.domain.config import ClientCredentials
from assetpub.domain.errors import ConfigurationError, RegistryError, StorageError
from assetpub.domain.models.asset import Asset
from assetpub.infrastructure.auth import ClientSecretTokenProvider
from assetpub.infrastructure.registry.http import HttpAssetRegistry
from assetpub.infrastructure.storage.base import BlobHeaders
from assetpub.infrastructure.storage.http import STORAGE_SCOPE, HttpBlobStore


def _make_response(status_code: int, payload: dict | None = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.url = "http://example.test"
    if payload is None:
        payload = {}
    r._content = json.dumps(payload).encode("utf-8")  # type: ignore[attr-defined]
    r.headers["Content-Type"] = "application/json"
    return r


def _credentials() -> ClientCredentials:
    return ClientCredentials(tenant_id="tenant", client_id="client", client_secret="secret")


def _token_provider(token: str = "token-123") -> Mock:
    provider = Mock(spec=ClientSecretTokenProvider)
    provider.get_token.return_value = token
    return provider


class TestClientSecretTokenProvider:
    """Tests for token acquisition and caching"""

    def test_incomplete_credentials(self):
        with pytest.raises(ConfigurationError, match="incomplete"):
            ClientSecretTokenProvider(ClientCredentials(tenant_id="tenant"))

    def test_requests_token(self):
        """Test the client-credentials request"""
        session = MagicMock()
        session.post.return_value = _make_response(200, {"access_token": "abc", "expires_in": 3600})
        provider = ClientSecretTokenProvider(
            _credentials(), authority="https://login.example/", session=session
        )

        assert provider.get_token("https://scope/.default") == "abc"

        args, kwargs = session.post.call_args
        assert args[0] == "https://login.example/tenant/oauth2/v2.0/token"
        assert kwargs["data"] == {
            "grant_type": "client_credentials",
            "client_id": "client",
            "client_secret": "secret",
            "scope": "https://scope/.default",
        }

    def test_token_cached_until_expiry(self):
        """Test cached tokens are reused and refreshed before expiry"""
        now = {"t": 0.0}
        session = MagicMock()
        session.post.side_effect = [
            _make_response(200, {"access_token": "first", "expires_in": 3600}),
            _make_response(200, {"access_token": "second", "expires_in": 3600}),
        ]
        provider = ClientSecretTokenProvider(_credentials(), session=session, clock=lambda: now["t"])

        assert provider.get_token("scope") == "first"
        now["t"] = 3000.0
        assert provider.get_token("scope") == "first"
        # Inside the refresh margin
        now["t"] = 3400.0
        assert provider.get_token("scope") == "second"
        assert session.post.call_count == 2

    def test_tokens_cached_per_scope(self):
        session = MagicMock()
        session.post.side_effect = [
            _make_response(200, {"access_token": "storage"}),
            _make_response(200, {"access_token": "db"}),
        ]
        provider = ClientSecretTokenProvider(_credentials(), session=session)

        assert provider.get_token("a") == "storage"
        assert provider.get_token("b") == "db"
        assert provider.get_token("a") == "storage"

    def test_http_error_raised(self):
        session = MagicMock()
        session.post.return_value = _make_response(401, {"error": "invalid_client"})
        provider = ClientSecretTokenProvider(_credentials(), session=session)

        with pytest.raises(requests.HTTPError):
            provider.get_token("scope")


class TestHttpBlobStore:
    """Tests for blob REST calls"""

    def test_exists_true(self):
        session = MagicMock()
        session.head.return_value = _make_response(200)
        tokens = _token_provider()
        store = HttpBlobStore("https://account.blob.test/", tokens, session=session)

        assert store.exists("insider", "abc/file name.zip") is True

        args, kwargs = session.head.call_args
        assert args[0] == "https://account.blob.test/insider/abc/file%20name.zip"
        assert kwargs["headers"]["Authorization"] == "Bearer token-123"
        tokens.get_token.assert_called_with(STORAGE_SCOPE)

    def test_exists_false_on_404(self):
        session = MagicMock()
        session.head.return_value = _make_response(404)
        store = HttpBlobStore("https://account.blob.test", _token_provider(), session=session)

        assert store.exists("insider", "abc/file.zip") is False

    def test_exists_error(self):
        session = MagicMock()
        session.head.return_value = _make_response(503)
        store = HttpBlobStore("https://account.blob.test", _token_provider(), session=session, name="mirror")

        with pytest.raises(StorageError, match="mirror") as exc_info:
            store.exists("insider", "abc/file.zip")
        assert exc_info.value.status_code == 503

    def test_upload_file(self, tmp_path):
        """Test block blob PUT with content headers"""
        artifact = tmp_path / "app.zip"
        artifact.write_bytes(b"data")
        session = MagicMock()
        sent = {}

        def fake_put(url, data, headers, timeout):
            sent["url"] = url
            sent["body"] = data.read()
            sent["headers"] = headers
            return _make_response(201)

        session.put.side_effect = fake_put
        store = HttpBlobStore("https://account.blob.test", _token_provider(), session=session)

        store.upload_file("stable", "abc/app.zip", artifact, BlobHeaders.for_file(artifact, "app.zip"))

        assert sent["url"] == "https://account.blob.test/stable/abc/app.zip"
        assert sent["body"] == b"data"
        assert sent["headers"]["x-ms-blob-type"] == "BlockBlob"
        assert sent["headers"]["x-ms-blob-content-type"] == "application/zip"
        assert sent["headers"]["x-ms-blob-content-disposition"] == 'attachment; filename="app.zip"'
        assert sent["headers"]["x-ms-blob-cache-control"] == "max-age=31536000, public"

    def test_upload_failure(self, tmp_path):
        artifact = tmp_path / "app.zip"
        artifact.write_bytes(b"data")
        session = MagicMock()
        session.put.return_value = _make_response(500, {"error": "boom"})
        store = HttpBlobStore("https://account.blob.test", _token_provider(), session=session)

        with pytest.raises(StorageError) as exc_info:
            store.upload_file("stable", "abc/app.zip", artifact, BlobHeaders.for_file(artifact, "app.zip"))
        assert exc_info.value.status_code == 500


class TestBlobHeaders:
    def test_unknown_extension_defaults_to_octet_stream(self, tmp_path):
        headers = BlobHeaders.for_file(tmp_path / "artifact.unknownext", "artifact.unknownext")
        assert headers.content_type == "application/octet-stream"


class TestHttpAssetRegistry:
    """Tests for stored procedure execution"""

    def _asset(self) -> Asset:
        return Asset.for_platform(
            "win32-x64",
            type="setup",
            url="https://cdn.test/stable/abc/setup.exe",
            hash="sha1",
            mooncake_url="https://mirror.test/stable/abc/setup.exe",
            sha256hash="sha256",
            size=42,
        )

    def test_create_asset(self):
        session = MagicMock()
        session.post.return_value = _make_response(200)
        tokens = _token_provider("db-token")
        registry = HttpAssetRegistry("https://db.test/", "stable", tokens, session=session)

        registry.create_asset("abc", self._asset())

        args, kwargs = session.post.call_args
        assert args[0] == "https://db.test/dbs/builds/colls/stable/sprocs/createAsset"
        commit, document, flag = kwargs["json"]
        assert commit == "abc"
        assert document["mooncakeUrl"] == "https://mirror.test/stable/abc/setup.exe"
        assert document["supportsFastUpdate"] is True
        assert flag is True
        assert unquote(kwargs["headers"]["Authorization"]) == "type=aad&ver=1.0&sig=db-token"
        assert kwargs["headers"]["x-ms-documentdb-partitionkey"] == '[""]'
        tokens.get_token.assert_called_once_with("https://db.test/.default")

    def test_create_asset_failure(self):
        session = MagicMock()
        session.post.return_value = _make_response(409, {"code": "Conflict"})
        registry = HttpAssetRegistry("https://db.test", "stable", _token_provider(), session=session)

        with pytest.raises(RegistryError, match="createAsset") as exc_info:
            registry.create_asset("abc", self._asset())
        assert exc_info.value.status_code == 409
