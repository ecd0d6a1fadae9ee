"""Attachment ingestion for sendMessage.

Each attachment arrives as a URI: an ``http(s)`` URL the client already
published somewhere, or a ``data:`` URI carrying the bytes inline. The
bytes are copied into object storage under the chat's prefix and the
resulting public URL is what the message stores.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import httpx

from lostfound.errors import ExternalServiceError
from lostfound.storage.service import ObjectStorage

from .protocol import AttachmentInput

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class UploadedAttachment:
    url: str
    content_type: str
    path: str


def parse_data_uri(uri: str) -> Tuple[bytes, Optional[str]]:
    """Decode ``data:[<mediatype>][;base64],<data>``.

    Returns:
        Tuple of (bytes, media type or None).

    Raises:
        ValueError: If the URI is malformed.
    """
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("malformed data URI")
    params = header[len("data:"):].split(";")
    media_type = params[0] or None
    if "base64" in params[1:]:
        try:
            return base64.b64decode(payload, validate=True), media_type
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return unquote(payload).encode("utf-8"), media_type


def safe_name(name: Optional[str], uri: str) -> str:
    """Pick a storage-safe file name from the item name or the URI path."""
    if not name and not uri.startswith("data:"):
        name = PurePosixPath(urlparse(uri).path).name
    name = _UNSAFE_NAME_CHARS.sub("_", name or "").strip("._")
    return name or "attachment"


class AttachmentUploader:
    """Fetches attachment bytes and writes them to object storage.

    Args:
        storage: Destination backend.
        key_prefix: Top-level folder for chat attachments.
        timeout: Seconds allowed for fetching one remote URI.
        transport: Optional httpx transport (tests inject a mock transport).
    """

    def __init__(
        self,
        storage: ObjectStorage,
        key_prefix: str = "Chats",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._storage = storage
        self._key_prefix = key_prefix.strip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, uri: str) -> Tuple[bytes, Optional[str]]:
        """Load the bytes behind *uri*.

        Raises:
            ExternalServiceError: If the URI is unsupported or unreachable.
        """
        if uri.startswith("data:"):
            try:
                return parse_data_uri(uri)
            except ValueError as e:
                raise ExternalServiceError(str(e), service="attachment") from e

        scheme = urlparse(uri).scheme
        if scheme not in ("http", "https"):
            raise ExternalServiceError(f"unsupported URI scheme '{scheme}'", service="attachment")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(uri, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"failed to fetch {uri}: {e}", service="attachment") from e

        content_type = response.headers.get("content-type")
        if content_type:
            content_type = content_type.split(";")[0].strip()
        return response.content, content_type

    async def upload(
        self, chat_id: str, message_id: str, attachment: AttachmentInput
    ) -> UploadedAttachment:
        """Copy one attachment into storage.

        Raises:
            ExternalServiceError: If fetching or saving fails.
        """
        content, detected_type = await self.fetch(attachment.uri)
        if not content:
            raise ExternalServiceError("attachment is empty", service="attachment")

        content_type = attachment.type or detected_type or DEFAULT_CONTENT_TYPE
        path = f"{self._key_prefix}/{chat_id}/{message_id}-{safe_name(attachment.name, attachment.uri)}"
        url = self._storage.save(path, content, content_type)
        return UploadedAttachment(url=url, content_type=content_type, path=path)

    def discard(self, uploads: List[UploadedAttachment]) -> None:
        """Delete stored attachments that no message ended up referencing."""
        for uploaded in uploads:
            try:
                self._storage.delete(uploaded.path)
            except ExternalServiceError as e:
                logger.error(f"[Storage] Could not remove orphaned {uploaded.path}: {e.message}")
            else:
                logger.info(f"[Storage] Removed orphaned {uploaded.path}")
