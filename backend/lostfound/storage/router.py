"""FastAPI router serving attachments kept by the local storage backend."""
import logging
import mimetypes

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from lostfound.chat.services import get_services

from .service import LocalObjectStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{path:path}")
async def download_file(path: str):
    """Download an attachment by its object path.

    Only available with the local storage backend; S3 objects are served
    by S3 directly.

    Args:
        path: Object path, e.g. ``Chats/{chatId}/{messageId}-photo.jpg``

    Raises:
        HTTPException 404: If the file does not exist or storage is not local
    """
    services = get_services()
    storage = services.storage if services else None
    if not isinstance(storage, LocalObjectStorage):
        raise HTTPException(status_code=404, detail="File not found")

    try:
        file_path = storage.resolve(path)
    except ValueError:
        logger.warning(f"[Storage] Rejected path outside upload dir: {path}")
        raise HTTPException(status_code=404, detail="File not found")

    if not file_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    media_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    return FileResponse(path=file_path, media_type=media_type)
