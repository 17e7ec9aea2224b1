"""Tests for the Google Cloud Storage adapter."""

from __future__ import annotations

import base64
import json
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcs_exceptions

from tactics_analyst.config import AppConfig
from tactics_analyst.errors import StorageError, StoredFileNotFound
from tactics_analyst.storage import GCSStorage, _load_credentials


@pytest.fixture()
def gcs_client():
    client = MagicMock()
    bucket = MagicMock()
    bucket.name = "test-bucket"
    client.bucket.return_value = bucket
    return client


@pytest.fixture()
def store(gcs_client) -> GCSStorage:
    return GCSStorage(gcs_client, "test-bucket")


def _bucket(gcs_client):
    return gcs_client.bucket.return_value


class TestConstruction:
    def test_empty_bucket_name_is_rejected(self, gcs_client):
        with pytest.raises(StorageError, match="STORAGE_BUCKET"):
            GCSStorage(gcs_client, "  ")

    def test_binds_bucket(self, store, gcs_client):
        gcs_client.bucket.assert_called_once_with("test-bucket")
        assert store.bucket_name == "test-bucket"

    def test_from_config_uses_ttls(self):
        cfg = AppConfig(storage_bucket="clips", gcp_project="proj", signed_read_url_ttl=60, signed_write_url_ttl=30)

        with patch("tactics_analyst.storage.storage.Client") as mock_cls:
            store = GCSStorage.from_config(cfg)

        mock_cls.assert_called_once_with(project="proj", credentials=None)
        assert store.read_url_ttl == 60
        assert store.write_url_ttl == 30


class TestCredentials:
    def test_empty_key_means_default_credentials(self):
        assert _load_credentials("") is None

    def test_invalid_key(self):
        with pytest.raises(StorageError, match="not a valid base64-encoded JSON key"):
            _load_credentials(base64.b64encode(b"not json").decode())

    def test_valid_key(self):
        info = {"type": "service_account", "project_id": "proj", "client_email": "sa@proj.iam"}
        encoded = base64.b64encode(json.dumps(info).encode()).decode()

        with patch(
            "tactics_analyst.storage.service_account.Credentials.from_service_account_info",
            return_value="creds",
        ) as mock_from_info:
            assert _load_credentials(encoded) == "creds"

        mock_from_info.assert_called_once_with(info)


class TestObjects:
    async def test_metadata(self, store, gcs_client):
        _bucket(gcs_client).get_blob.return_value = SimpleNamespace(size=1024, content_type="video/quicktime")

        meta = await store.get_metadata("clip.mov")

        _bucket(gcs_client).get_blob.assert_called_once_with("clip.mov")
        assert meta.size_bytes == 1024
        assert meta.content_type == "video/quicktime"

    async def test_metadata_defaults_content_type(self, store, gcs_client):
        _bucket(gcs_client).get_blob.return_value = SimpleNamespace(size=10, content_type=None)

        meta = await store.get_metadata("clip")

        assert meta.content_type == "video/mp4"

    async def test_missing_object(self, store, gcs_client):
        _bucket(gcs_client).get_blob.return_value = None

        with pytest.raises(StoredFileNotFound, match="gone.mp4"):
            await store.get_metadata("gone.mp4")

    async def test_download(self, store, gcs_client):
        _bucket(gcs_client).blob.return_value.download_as_bytes.return_value = b"video"

        assert await store.download_bytes("clip.mp4") == b"video"
        _bucket(gcs_client).blob.assert_called_with("clip.mp4")

    async def test_download_missing(self, store, gcs_client):
        _bucket(gcs_client).blob.return_value.download_as_bytes.side_effect = gcs_exceptions.NotFound("gone")

        with pytest.raises(StoredFileNotFound):
            await store.download_bytes("gone.mp4")

    async def test_list_files(self, store, gcs_client):
        gcs_client.list_blobs.return_value = [SimpleNamespace(name="a.mp4"), SimpleNamespace(name="b.mp4")]

        assert await store.list_files() == ["a.mp4", "b.mp4"]
        gcs_client.list_blobs.assert_called_once_with(_bucket(gcs_client))


class TestSignedUrls:
    async def test_read_url_defaults_to_one_hour(self, store, gcs_client):
        blob = _bucket(gcs_client).blob.return_value
        blob.generate_signed_url.return_value = "https://signed/read"

        assert await store.signed_read_url("clip.mp4") == "https://signed/read"
        blob.generate_signed_url.assert_called_once_with(
            version="v4", method="GET", expiration=timedelta(seconds=3600),
        )

    async def test_read_url_ttl_override(self, store, gcs_client):
        blob = _bucket(gcs_client).blob.return_value

        await store.signed_read_url("clip.mp4", 120)

        assert blob.generate_signed_url.call_args.kwargs["expiration"] == timedelta(seconds=120)

    async def test_write_url_is_bound_to_content_type(self, store, gcs_client):
        blob = _bucket(gcs_client).blob.return_value
        blob.generate_signed_url.return_value = "https://signed/write"

        assert await store.signed_write_url("clip.mp4", "video/mp4") == "https://signed/write"
        blob.generate_signed_url.assert_called_once_with(
            version="v4", method="PUT", expiration=timedelta(seconds=900), content_type="video/mp4",
        )
