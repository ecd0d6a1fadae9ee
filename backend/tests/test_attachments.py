"""Tests for attachment fetching and upload."""
import asyncio
import base64

import httpx
import pytest

from lostfound.chat.attachments import AttachmentUploader, parse_data_uri, safe_name
from lostfound.chat.protocol import AttachmentInput
from lostfound.errors import ExternalServiceError

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def _remote_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/photos/wallet.jpg":
            return httpx.Response(
                200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg; charset=binary"}
            )
        return httpx.Response(404)
    return httpx.MockTransport(handler)


@pytest.fixture
def uploader(local_storage):
    return AttachmentUploader(local_storage, transport=_remote_transport())


class TestDataUri:

    def test_base64(self):
        content, media_type = parse_data_uri(PNG_DATA_URI)
        assert content == PNG_BYTES
        assert media_type == "image/png"

    def test_plain_text(self):
        content, media_type = parse_data_uri("data:text/plain,hello%20there")
        assert content == b"hello there"
        assert media_type == "text/plain"

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_data_uri("data:image/png;base64")


class TestSafeName:

    def test_uses_given_name(self):
        assert safe_name("my photo (1).jpg", "data:,x") == "my_photo_1_.jpg"

    def test_falls_back_to_url_path(self):
        assert safe_name(None, "https://img.example.com/a/b/keys.png?x=1") == "keys.png"

    def test_default_for_data_uri(self):
        assert safe_name(None, PNG_DATA_URI) == "attachment"


class TestUpload:

    def test_data_uri_is_stored_under_chat_prefix(self, uploader, local_storage):
        result = asyncio.run(uploader.upload(
            "chat-1", "msg-1", AttachmentInput(uri=PNG_DATA_URI, name="wallet.png")
        ))

        assert result.path == "Chats/chat-1/msg-1-wallet.png"
        assert result.content_type == "image/png"
        assert result.url == "http://testserver/files/Chats/chat-1/msg-1-wallet.png"
        assert (local_storage.root / result.path).read_bytes() == PNG_BYTES

    def test_remote_uri_is_fetched(self, uploader, local_storage):
        result = asyncio.run(uploader.upload(
            "chat-1", "msg-2", AttachmentInput(uri="https://img.example.com/photos/wallet.jpg")
        ))

        assert result.path == "Chats/chat-1/msg-2-wallet.jpg"
        assert result.content_type == "image/jpeg"
        assert (local_storage.root / result.path).read_bytes() == b"jpeg-bytes"

    def test_declared_type_wins(self, uploader):
        result = asyncio.run(uploader.upload(
            "chat-1", "msg-3", AttachmentInput(uri=PNG_DATA_URI, type="image/webp")
        ))
        assert result.content_type == "image/webp"

    def test_http_error_becomes_external_service_error(self, uploader):
        with pytest.raises(ExternalServiceError):
            asyncio.run(uploader.upload(
                "chat-1", "msg-4", AttachmentInput(uri="https://img.example.com/missing.jpg")
            ))

    def test_unsupported_scheme(self, uploader):
        with pytest.raises(ExternalServiceError):
            asyncio.run(uploader.upload(
                "chat-1", "msg-5", AttachmentInput(uri="file:///etc/passwd")
            ))

    def test_empty_content_rejected(self, uploader):
        with pytest.raises(ExternalServiceError):
            asyncio.run(uploader.upload("chat-1", "msg-6", AttachmentInput(uri="data:text/plain,")))
