"""Tests for attachment storage backends and the /files route."""
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from lostfound.config import AppSettings
from lostfound.errors import ExternalServiceError
from lostfound.main import app
from lostfound.storage.service import (
    LocalObjectStorage,
    S3ObjectStorage,
    build_storage,
)


client = TestClient(app)


class TestLocalObjectStorage:

    def test_save_writes_file_and_returns_url(self, local_storage):
        url = local_storage.save("Chats/c1/m1-photo.jpg", b"jpeg-bytes", "image/jpeg")

        assert url == "http://testserver/files/Chats/c1/m1-photo.jpg"
        assert (local_storage.root / "Chats" / "c1" / "m1-photo.jpg").read_bytes() == b"jpeg-bytes"

    def test_delete_removes_file(self, local_storage):
        local_storage.save("Chats/c1/m1-a.txt", b"x", "text/plain")
        local_storage.delete("Chats/c1/m1-a.txt")
        assert not (local_storage.root / "Chats" / "c1" / "m1-a.txt").exists()

    def test_delete_missing_is_ignored(self, local_storage):
        local_storage.delete("Chats/none/missing.bin")

    def test_path_traversal_rejected(self, local_storage):
        with pytest.raises(ExternalServiceError):
            local_storage.save("../escape.txt", b"x", "text/plain")


class TestS3ObjectStorage:

    def test_save_puts_public_object(self):
        s3 = MagicMock()
        storage = S3ObjectStorage(bucket="lostfound-media", region="eu-west-2", client=s3)

        url = storage.save("Chats/c1/m1-photo.jpg", b"bytes", "image/jpeg")

        s3.put_object.assert_called_once_with(
            Bucket="lostfound-media",
            Key="Chats/c1/m1-photo.jpg",
            Body=b"bytes",
            ContentType="image/jpeg",
            ACL="public-read",
        )
        assert url == "https://lostfound-media.s3.eu-west-2.amazonaws.com/Chats/c1/m1-photo.jpg"

    def test_client_error_becomes_external_service_error(self):
        s3 = MagicMock()
        s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        storage = S3ObjectStorage(bucket="lostfound-media", region="eu-west-2", client=s3)

        with pytest.raises(ExternalServiceError) as exc_info:
            storage.save("Chats/c1/m1.jpg", b"x", "image/jpeg")
        assert exc_info.value.service == "s3"

    def test_delete(self):
        s3 = MagicMock()
        storage = S3ObjectStorage(bucket="lostfound-media", region="eu-west-2", client=s3)
        storage.delete("Chats/c1/m1.jpg")
        s3.delete_object.assert_called_once_with(Bucket="lostfound-media", Key="Chats/c1/m1.jpg")

    def test_bucket_required(self):
        with pytest.raises(ValueError):
            S3ObjectStorage(bucket="", region="eu-west-2", client=MagicMock())


def test_build_storage_local(tmp_path):
    settings = AppSettings(storage={"backend": "local", "upload_dir": str(tmp_path / "up")})
    storage = build_storage(settings)
    assert isinstance(storage, LocalObjectStorage)
    assert storage.root == (tmp_path / "up").resolve()


class TestFilesRoute:

    def test_serves_saved_file(self, services):
        services.storage.save("Chats/c1/m1-note.txt", b"hello", "text/plain")

        response = client.get("/files/Chats/c1/m1-note.txt")

        assert response.status_code == 200
        assert response.content == b"hello"

    def test_missing_file_is_404(self, services):
        assert client.get("/files/Chats/c1/nothing.txt").status_code == 404

    def test_not_configured_is_404(self):
        assert client.get("/files/Chats/c1/m1-note.txt").status_code == 404


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
