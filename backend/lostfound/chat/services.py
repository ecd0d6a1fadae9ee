"""Wiring of the chat components.

The gateway and the HTTP routes read their collaborators from a single
``ChatServices`` bundle. The application builds one at startup; tests
build their own against an in-memory database and install it with
``set_services``.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from lostfound.config import AppSettings
from lostfound.db import Database
from lostfound.storage.service import ObjectStorage, build_storage
from lostfound.users.service import UserDirectory

from .attachments import AttachmentUploader
from .directory import ChatDirectory
from .feed import MessageFeedAssembler
from .gateway import ChatGateway
from .inbox import ChatListAssembler
from .manager import ConnectionManager
from .read_state import ReadStateTracker
from .store import MessageStore

logger = logging.getLogger(__name__)


@dataclass
class ChatServices:
    db: Database
    storage: ObjectStorage
    store: MessageStore
    directory: ChatDirectory
    users: UserDirectory
    tracker: ReadStateTracker
    inbox: ChatListAssembler
    feed: MessageFeedAssembler
    manager: ConnectionManager
    gateway: ChatGateway


def build_services(
    config: AppSettings,
    db: Optional[Database] = None,
    storage: Optional[ObjectStorage] = None,
    uploader: Optional[AttachmentUploader] = None,
) -> ChatServices:
    """Create every chat component from configuration.

    Args:
        config: Application settings.
        db: Database handle; the process-wide instance when omitted.
        storage: Attachment storage; built from ``config.storage`` when omitted.
        uploader: Attachment uploader; built around *storage* when omitted.
    """
    db = db or Database.get_instance(config.database.path)
    storage = storage or build_storage(config)
    uploader = uploader or AttachmentUploader(
        storage,
        key_prefix=config.storage.key_prefix,
        timeout=config.chat.attachment_fetch_timeout_seconds,
    )

    store = MessageStore(db)
    directory = ChatDirectory(db)
    users = UserDirectory(db)
    tracker = ReadStateTracker(store)
    inbox = ChatListAssembler(store, directory, users, page_size=config.chat.inbox_page_size)
    feed = MessageFeedAssembler(store, page_size=config.chat.feed_page_size)
    manager = ConnectionManager()
    gateway = ChatGateway(
        manager=manager,
        store=store,
        directory=directory,
        tracker=tracker,
        inbox=inbox,
        feed=feed,
        users=users,
        uploader=uploader,
        max_attachments=config.chat.max_attachments,
    )
    logger.info(f"[Services] Chat services ready (database={db.path})")
    return ChatServices(
        db=db,
        storage=storage,
        store=store,
        directory=directory,
        users=users,
        tracker=tracker,
        inbox=inbox,
        feed=feed,
        manager=manager,
        gateway=gateway,
    )


# Module-level singleton, set during app lifespan startup.
_services: Optional[ChatServices] = None


def get_services() -> Optional[ChatServices]:
    """Return the active chat services, or None before startup."""
    return _services


def set_services(services: Optional[ChatServices]) -> None:
    """Install the chat services (called from lifespan and tests)."""
    global _services
    _services = services


def reset_services() -> None:
    """Forget the chat services (for testing)."""
    set_services(None)
